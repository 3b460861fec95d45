import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


def describe(event_context: dict[str, Any]) -> str:
    """Short description of an event: its name plus the command and author involved, when present."""
    event_name = event_context.get("event_name")
    command = None
    author = None
    for arg in event_context.get("args", ()):
        if command is None and hasattr(arg, "group_id") and hasattr(arg, "member_name"):
            command = f"{arg.group_id}:{arg.member_name}"
        message = getattr(arg, "message", None)
        if author is None and message is not None and hasattr(message, "author"):
            author = message.author.id
            if command is None and getattr(arg, "command", None) is not None:
                command = f"{arg.command.group_id}:{arg.command.member_name}"

    details = [part for part in (command, f"author={author}" if author is not None else None) if part]
    return f"{event_name} [{' '.join(details)}]" if details else str(event_name)


class LoggingMiddleware:
    """Logs every emitted event and how long its listeners took."""

    async def __call__(self, event_context: dict[str, Any], phase: str) -> None:
        if phase == "pre":
            event_context["started_at"] = time.perf_counter()
            logger.debug(f"Event started: {describe(event_context)}")

        elif phase == "post":
            start_time = event_context.pop("started_at", None)
            took = f" (took {time.perf_counter() - start_time:.3f}s)" if start_time is not None else ""
            if event_context.get("error") is not None:
                logger.debug(f"Event completed with listener errors: {describe(event_context)}{took}")
            else:
                logger.debug(f"Event completed: {describe(event_context)}{took}")
