# services/notification_service.py
import logging
from datetime import datetime
from typing import Optional

from core.errors import DispatchError
from models.air_quality import RiskSignal
from tools.mailer import Mailer

logger = logging.getLogger(__name__)

MAX_RECENT = 20


class NotificationService:
    """
    Alert dispatcher.

    - Preferred: email through the SMTP Mailer.
    - No Mailer configured (SMTP settings incomplete): log the alert and
      record it as not delivered; this is not an error.

    Any Mailer failure is raised as DispatchError for the caller to isolate.
    """

    def __init__(self, mailer: Optional[Mailer] = None):
        self.mailer = mailer
        self.sent_notifications = []

    async def send(self, destination: str, signal: RiskSignal) -> dict:
        record = {
            "destination": destination,
            "risk": signal.label(),
            "channel": "email" if self.mailer else "console",
            "published": False,
            "at": datetime.utcnow().isoformat(),
        }
        if self.mailer is None:
            logger.warning("[NotificationService] SMTP configuration missing; skipping email to %s (%s)",
                           destination, signal.label())
            self._remember(record)
            return record

        try:
            await self.mailer.send_alert(destination, signal)
        except Exception as e:
            # aiosmtplib raises a family of SMTPException/OSError/timeout types
            record["error"] = str(e)
            self._remember(record)
            raise DispatchError(f"email to {destination} failed: {e}") from e

        record["published"] = True
        self._remember(record)
        return record

    def _remember(self, record: dict) -> None:
        self.sent_notifications.append(record)
        del self.sent_notifications[:-MAX_RECENT]

    def recent_notifications(self, destination: Optional[str] = None):
        """Return the last 20 dispatch records, optionally only those sent to `destination`."""
        records = self.sent_notifications[-MAX_RECENT:]
        if destination is not None:
            records = [r for r in records if r["destination"] == destination]
        return list(records)
