from models.subscription import Subscription, SubscribeRequest
from core.errors import SubscriptionValidationError
from datetime import datetime
from typing import Dict, List, Optional, Protocol
import asyncio
import logging

logger = logging.getLogger(__name__)


class SubscriptionStore(Protocol):
    """Keyed record storage: one Subscription per owner_id."""

    async def upsert(self, sub: Subscription) -> Subscription: ...

    async def list_all(self) -> List[Subscription]: ...

    async def get(self, owner_id: str) -> Optional[Subscription]: ...

    async def delete(self, owner_id: str) -> bool: ...

    async def ping(self) -> bool: ...


class InMemorySubscriptionStore:
    """
    Dev/test store. Dicts keep insertion order, so list_all() enumerates in
    the order owners first subscribed; a replace keeps the owner's slot.
    """

    def __init__(self):
        self.subscriptions: Dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, sub: Subscription) -> Subscription:
        async with self._lock:
            now = datetime.utcnow()
            existing = self.subscriptions.get(sub.owner_id)
            stored = sub.model_copy(update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            })
            self.subscriptions[sub.owner_id] = stored
            if existing:
                logger.info("Replaced subscription for owner=%s", sub.owner_id)
            else:
                logger.info("Created subscription for owner=%s", sub.owner_id)
            return stored

    async def list_all(self) -> List[Subscription]:
        async with self._lock:
            return list(self.subscriptions.values())

    async def get(self, owner_id: str) -> Optional[Subscription]:
        return self.subscriptions.get(owner_id)

    async def delete(self, owner_id: str) -> bool:
        async with self._lock:
            return self.subscriptions.pop(owner_id, None) is not None

    async def ping(self) -> bool:
        return True


class SubscriptionService:
    """
    Inbound subscribe path: validate, then hand off to the store.
    Nothing invalid ever reaches store.upsert().
    """

    def __init__(self, store: SubscriptionStore):
        self.store = store

    @staticmethod
    def validate(owner_id: str, req: SubscribeRequest) -> Subscription:
        if not owner_id:
            raise SubscriptionValidationError("owner identity is required")
        # zero is treated the same as unset
        if not req.latitude or not req.longitude:
            raise SubscriptionValidationError("Latitude and longitude are required")
        if not -90.0 <= req.latitude <= 90.0:
            raise SubscriptionValidationError("Latitude must be between -90 and 90")
        if not -180.0 <= req.longitude <= 180.0:
            raise SubscriptionValidationError("Longitude must be between -180 and 180")
        if req.threshold is not None and req.threshold < 0:
            raise SubscriptionValidationError("Threshold must not be negative")
        return Subscription(
            owner_id=str(owner_id),
            latitude=req.latitude,
            longitude=req.longitude,
            threshold=req.threshold,
            email=(req.email or "").strip(),
        )

    async def subscribe(self, owner_id: str, req: SubscribeRequest) -> Subscription:
        sub = self.validate(owner_id, req)
        return await self.store.upsert(sub)

    async def unsubscribe(self, owner_id: str) -> bool:
        return await self.store.delete(owner_id)

    async def get_subscription(self, owner_id: str) -> Optional[Subscription]:
        return await self.store.get(owner_id)
