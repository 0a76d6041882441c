"""Emergency Shutdown — фазы RUNNING → SHUTDOWN → REFUND_OPEN."""

from .coordinator import EmergencyShutdownCoordinator, ShutdownFlag, ShutdownTransitionResult

__all__ = [
    "EmergencyShutdownCoordinator",
    "ShutdownFlag",
    "ShutdownTransitionResult",
]
