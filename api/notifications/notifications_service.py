import logging
from blinker import signal

from utils.cache_utils import cache_manager

logger = logging.getLogger(__name__)

# ------------------------------------------
# Define signals
# ------------------------------------------
student_checked_in           = signal("student_checked_in")
student_checked_out          = signal("student_checked_out")
activity_started             = signal("activity_started")
activity_ended               = signal("activity_ended")
group_claimed                = signal("group_claimed")
scheduled_checkout_executed  = signal("scheduled_checkout_executed")

ALL_SIGNALS = (
    student_checked_in,
    student_checked_out,
    activity_started,
    activity_ended,
    group_claimed,
    scheduled_checkout_executed,
)


def emit(sig, sender, **payload) -> None:
    """
    Send a domain event after the write has committed. A failing listener
    is logged and never undoes the write.
    """
    try:
        sig.send(sender, event_name=sig.name, **payload)
    except Exception:
        logger.exception("Listener for %s failed", sig.name)


# ------------------------------------------
# Listener: log every domain event
# ------------------------------------------
def _log_event(sender, **kwargs):
    logger.info("[event] %s %s", kwargs.get("event_name"), {k: v for k, v in kwargs.items() if k != "event_name"})


for _sig in ALL_SIGNALS:
    _sig.connect(_log_event, weak=False)


# ------------------------------------------
# Listener: drop cached analytics when occupancy changes
# ------------------------------------------
ANALYTICS_CACHE_PATTERN = "cache:analytics:*"


def _invalidate_analytics(sender, **kwargs):
    cache_manager.delete_pattern(ANALYTICS_CACHE_PATTERN)


for _sig in (student_checked_in, student_checked_out, activity_started, activity_ended):
    _sig.connect(_invalidate_analytics, weak=False)
