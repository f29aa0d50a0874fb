# api/routes_notifications.py
from fastapi import APIRouter, Depends, HTTPException

from core.auth import get_current_user
from core.bootstrap import Services, get_services
from core.response import ok
from models.subscription import SubscribeRequest

router = APIRouter()


@router.post("/subscribe")
async def subscribe(
    req: SubscribeRequest,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Create or replace the caller's subscription.

    - 200: stored (a second call for the same owner replaces the first)
    - 400: missing/zero/out-of-range coordinates or negative threshold
    - 401: no valid bearer token
    - 503: subscription store unavailable
    """
    sub = await services.subscription_service.subscribe(user["user_id"], req)
    return ok({"message": "Subscription updated", "subscription": sub.model_dump(mode="json")})


@router.get("/subscription")
async def my_subscription(
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    sub = await services.subscription_service.get_subscription(user["user_id"])
    if sub is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return ok(sub.model_dump(mode="json"))


@router.delete("/subscribe")
async def unsubscribe(
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Remove the caller's subscription (404 when there is none)."""
    removed = await services.subscription_service.unsubscribe(user["user_id"])
    if not removed:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return ok({"message": "Unsubscribed successfully"})


@router.get("/recent")
async def recent_notifications(
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Caller's alerts among the last 20 dispatches recorded by this process."""
    sub = await services.subscription_service.get_subscription(user["user_id"])
    if sub is None or not sub.email:
        return ok([])
    return ok(services.notification_service.recent_notifications(sub.email))
