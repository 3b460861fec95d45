import logging
import traceback
from collections import Counter
from typing import Any

logger = logging.getLogger(__name__)

# Events whose arguments carry an exception raised while dispatching.
ERROR_EVENTS = {"error", "command_error"}


class ErrorHandlerMiddleware:
    """Logs tracebacks for dispatch errors and failing listeners, and counts them per event."""

    def __init__(self) -> None:
        self.error_counts: Counter[str] = Counter()

    async def __call__(self, event_context: dict[str, Any], phase: str) -> None:
        event_name = event_context.get("event_name", "unknown")

        if phase == "pre" and event_name in ERROR_EVENTS:
            error = next((arg for arg in event_context.get("args", ()) if isinstance(arg, BaseException)), None)
            if error is not None:
                self._log(event_name, error)

        elif phase == "post" and event_context.get("error"):
            self._log(event_name, event_context["error"])

    def _log(self, event_name: str, error: BaseException) -> None:
        self.error_counts[event_name] += 1
        logger.error(f"Error in event {event_name}: {error}")
        logger.error("".join(traceback.format_exception(type(error), error, error.__traceback__)))
