"""
SQLAlchemy ORM models.

Purpose:
- Define the air quality subscription table
- Use SQLAlchemy async-compatible models
- Support migrations via Alembic

Production notes:
- owner_id carries a UNIQUE index: it is what makes upsert-by-owner safe
  against two concurrent subscribe calls for the same owner
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from core.db import Base
from datetime import datetime


class SubscriptionRow(Base):
    """
    Represents an owner's air quality alert subscription.

    Columns:
    - owner_id: subscriber identity (unique business key)
    - latitude/longitude: location to watch
    - threshold: numeric AQI threshold (numeric policy), nullable
    - email: alert destination, may be empty
    - created_at/updated_at: audit timestamps
    """
    __tablename__ = "air_quality_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(100), unique=True, index=True, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    threshold = Column(Integer, nullable=True)
    email = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
