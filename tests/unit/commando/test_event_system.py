"""Tests for event system functionality."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from commando.core.event_system import EventSystem


class TestEventSystem:
    """Test EventSystem functionality."""

    def test_event_system_creation(self):
        """Test creating an EventSystem instance."""
        event_system = EventSystem()

        assert event_system._listeners == {}
        assert event_system._middleware == []

    def test_add_and_remove_listener(self):
        """Test adding and removing an event listener."""
        event_system = EventSystem()
        listener = MagicMock()
        listener.__name__ = "test_listener"

        event_system.add_listener("test_event", listener)
        assert event_system.get_listeners("test_event") == [listener]
        assert event_system.get_all_events() == ["test_event"]

        event_system.remove_listener("test_event", listener)
        assert event_system.get_listeners("test_event") == []
        assert event_system.get_all_events() == []

    def test_remove_nonexistent_listener(self):
        """Test removing a listener that doesn't exist."""
        event_system = EventSystem()
        listener = MagicMock()
        listener.__name__ = "test_listener"

        # Should not raise an exception
        event_system.remove_listener("test_event", listener)

    def test_listen_decorator(self):
        """Test registering a listener with the decorator."""
        event_system = EventSystem()

        @event_system.listen("command_run")
        async def on_run(*args):
            pass

        assert on_run in event_system.get_listeners("command_run")

    def test_remove_all_listeners(self):
        """Test clearing one event's listeners."""
        event_system = EventSystem()
        event_system.add_listener("a", lambda: None)
        event_system.add_listener("a", lambda: None)

        event_system.remove_all_listeners("a")

        assert event_system.get_listeners("a") == []

    @pytest.mark.asyncio
    async def test_emit_sync_and_async_listeners(self):
        """Test both kinds of listener receive the arguments."""
        event_system = EventSystem()
        async_listener = AsyncMock()
        sync_listener = MagicMock()
        event_system.add_listener("test_event", async_listener)
        event_system.add_listener("test_event", sync_listener)

        await event_system.emit("test_event", 1, key="value")

        async_listener.assert_called_once_with(1, key="value")
        sync_listener.assert_called_once_with(1, key="value")

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self):
        """Test one failing listener doesn't affect the others."""
        event_system = EventSystem()
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        working = AsyncMock()
        event_system.add_listener("test_event", failing)
        event_system.add_listener("test_event", working)

        await event_system.emit("test_event")

        working.assert_called_once()

    @pytest.mark.asyncio
    async def test_middleware_phases(self):
        """Test middleware runs before and after, even without listeners."""
        event_system = EventSystem()
        phases = []

        def middleware(event_context, phase):
            phases.append((event_context["event_name"], phase))

        event_system.add_middleware(middleware)
        await event_system.emit("lonely")

        assert phases == [("lonely", "pre"), ("lonely", "post")]

    @pytest.mark.asyncio
    async def test_middleware_can_stop_event(self):
        """Test a middleware returning False stops the event."""
        event_system = EventSystem()
        listener = AsyncMock()
        event_system.add_listener("test_event", listener)
        event_system.add_middleware(lambda event_context, phase: False)

        await event_system.emit("test_event")

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_listener_error_reaches_post_middleware(self):
        """Test the post phase sees a listener's error."""
        event_system = EventSystem()
        seen = []
        event_system.add_listener("test_event", AsyncMock(side_effect=ValueError("bad")))
        event_system.add_middleware(lambda ctx, phase: seen.append(ctx["error"]) if phase == "post" else None)

        await event_system.emit("test_event")

        assert isinstance(seen[0], ValueError)

    @pytest.mark.asyncio
    async def test_failing_middleware_skipped(self):
        """Test a failing middleware doesn't stop the event."""
        event_system = EventSystem()
        listener = AsyncMock()
        event_system.add_listener("test_event", listener)

        def broken(event_context, phase):
            raise RuntimeError("middleware broke")

        event_system.add_middleware(broken)
        await event_system.emit("test_event")

        listener.assert_called_once()

    def test_remove_middleware(self):
        """Test removing middleware."""
        event_system = EventSystem()
        middleware = MagicMock()
        middleware.__name__ = "middleware"

        event_system.add_middleware(middleware)
        event_system.remove_middleware(middleware)

        assert event_system._middleware == []
