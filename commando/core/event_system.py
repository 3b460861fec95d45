import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def _name(func: Callable) -> str:
    return getattr(func, "__name__", type(func).__name__)


class EventSystem:
    """Async event bus used for dispatcher notifications.

    Listeners for one event run concurrently; a failing listener is logged and
    recorded on the event context without affecting the others. Middleware is
    called with ``(event_context, "pre")`` before and ``(event_context, "post")``
    after the listeners, even when nobody listens.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable]] = {}
        self._middleware: list[Callable] = []

    def add_middleware(self, middleware: Callable) -> None:
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {_name(middleware)}")

    def remove_middleware(self, middleware: Callable) -> None:
        if middleware in self._middleware:
            self._middleware.remove(middleware)
            logger.debug(f"Removed middleware: {_name(middleware)}")

    def listen(self, event_name: str) -> Callable:
        def decorator(func: Callable) -> Callable:
            self.add_listener(event_name, func)
            return func

        return decorator

    def add_listener(self, event_name: str, callback: Callable) -> None:
        self._listeners.setdefault(event_name, []).append(callback)
        logger.debug(f"Added listener for {event_name}: {_name(callback)}")

    def remove_listener(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)
            logger.debug(f"Removed listener for {event_name}: {_name(callback)}")
        else:
            logger.warning(f"Listener {_name(callback)} not found for {event_name}")

    def remove_all_listeners(self, event_name: str) -> None:
        self._listeners.pop(event_name, None)

    async def emit(self, event_name: str, *args: Any, **kwargs: Any) -> None:
        event_context = {
            "event_name": event_name,
            "args": args,
            "kwargs": kwargs,
            "stopped": False,
            "error": None,
        }

        for middleware in self._middleware:
            try:
                result = await self._call_maybe_async(middleware, event_context, "pre")
            except Exception as e:
                logger.error(f"Error in middleware {_name(middleware)}: {e}")
                continue
            if result is False or event_context["stopped"]:
                logger.debug(f"Event {event_name} stopped by middleware")
                return

        listeners = list(self._listeners.get(event_name, []))
        if listeners:
            results = await asyncio.gather(
                *(self._call_maybe_async(listener, *args, **kwargs) for listener in listeners),
                return_exceptions=True,
            )
            for listener, result in zip(listeners, results):
                if isinstance(result, Exception):
                    logger.error(f"Error in listener {_name(listener)} for {event_name}: {result}")
                    event_context["error"] = result

        for middleware in self._middleware:
            try:
                await self._call_maybe_async(middleware, event_context, "post")
            except Exception as e:
                logger.error(f"Error in middleware {_name(middleware)} (post): {e}")

    async def _call_maybe_async(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            return await result
        return result

    def get_listeners(self, event_name: str) -> list[Callable]:
        return self._listeners.get(event_name, []).copy()

    def get_all_events(self) -> list[str]:
        return [name for name, listeners in self._listeners.items() if listeners]
