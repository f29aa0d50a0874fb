"""
Error taxonomy for the alerting pipeline.

- StoreUnavailableError: tick-level; the scheduler backs off and retries.
- MetricsFetchError / PredictionError / DispatchError: subscriber-level;
  logged by the scheduler and never propagated past that subscriber.
- SubscriptionValidationError: rejected synchronously to the caller.
"""


class AirAlertError(Exception):
    """Base class for application errors."""


class StoreUnavailableError(AirAlertError):
    pass


class SubscriptionValidationError(AirAlertError, ValueError):
    pass


class MetricsFetchError(AirAlertError):
    pass


class PredictionError(AirAlertError):
    pass


class DispatchError(AirAlertError):
    pass
