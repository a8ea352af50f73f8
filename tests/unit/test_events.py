"""Tests for event bus module."""

import pytest

from visionassist.common.events import Event, EventBus, topic_matches


class TestEvent:
    """Tests for Event class."""

    def test_event_creation(self):
        """Test creating an event."""
        event = Event(
            topic="assistant.state",
            data={"state": "idle"},
            source="test",
        )

        assert event.topic == "assistant.state"
        assert event.data == {"state": "idle"}
        assert event.source == "test"
        assert event.event_id
        assert event.timestamp > 0


class TestEventBus:
    """Tests for EventBus class."""

    @pytest.mark.asyncio
    async def test_subscribe_and_publish(self, event_bus: EventBus):
        """Test basic subscribe and publish."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        event_bus.subscribe("test.topic", handler)

        await event_bus.publish(Event(topic="test.topic", data={"test": True}, source="test"))

        assert len(received_events) == 1
        assert received_events[0].topic == "test.topic"
        assert received_events[0].data == {"test": True}

    @pytest.mark.asyncio
    async def test_emit(self, event_bus: EventBus):
        """Test publishing from keyword data."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        event_bus.subscribe("assistant.response", handler)
        await event_bus.emit("assistant.response", "orchestrator", text="hi", ok=True)

        assert received_events[0].data == {"text": "hi", "ok": True}
        assert received_events[0].source == "orchestrator"

    @pytest.mark.asyncio
    async def test_wildcard_subscribe_single(self, event_bus: EventBus):
        """Test single-level wildcard subscription."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        event_bus.subscribe("test.*", handler)

        await event_bus.publish(Event(topic="test.one", data={}, source="test"))
        await event_bus.publish(Event(topic="test.two", data={}, source="test"))
        await event_bus.publish(Event(topic="other.one", data={}, source="test"))

        assert len(received_events) == 2
        assert received_events[0].topic == "test.one"
        assert received_events[1].topic == "test.two"

    @pytest.mark.asyncio
    async def test_wildcard_subscribe_multi(self, event_bus: EventBus):
        """Test multi-level wildcard subscription."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        event_bus.subscribe("test.**", handler)

        await event_bus.publish(Event(topic="test.one", data={}, source="test"))
        await event_bus.publish(Event(topic="test.one.two", data={}, source="test"))
        await event_bus.publish(Event(topic="test.one.two.three", data={}, source="test"))

        assert len(received_events) == 3

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus: EventBus):
        """Test unsubscribe function."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        unsubscribe = event_bus.subscribe("test.topic", handler)

        await event_bus.publish(Event(topic="test.topic", data={}, source="test"))
        assert len(received_events) == 1

        unsubscribe()
        unsubscribe()

        await event_bus.publish(Event(topic="test.topic", data={}, source="test"))
        assert len(received_events) == 1

    @pytest.mark.asyncio
    async def test_handler_error_isolation(self, event_bus: EventBus):
        """Test that handler errors don't affect other handlers."""
        results = []

        async def failing_handler(event: Event):
            raise ValueError("Test error")

        async def working_handler(event: Event):
            results.append(event)

        event_bus.subscribe("test.topic", failing_handler)
        event_bus.subscribe("test.topic", working_handler)

        await event_bus.publish(Event(topic="test.topic", data={}, source="test"))

        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_history(self):
        """Test history is bounded and newest first."""
        bus = EventBus(history_limit=3)

        for i in range(5):
            await bus.emit(f"test.{i}", "test")

        history = bus.get_history()
        assert [e.topic for e in history] == ["test.4", "test.3", "test.2"]
        assert [e.topic for e in bus.get_history("test.3")] == ["test.3"]

        bus.clear_history()
        assert bus.get_history() == []


class TestTopicMatches:
    """Tests for topic pattern matching."""

    def test_exact(self):
        assert topic_matches("ui.settings", "ui.settings")
        assert not topic_matches("ui.settings", "ui.other")
        assert not topic_matches("ui.settings.open", "ui.settings")

    def test_single_segment_wildcard(self):
        assert topic_matches("assistant.state", "assistant.*")
        assert not topic_matches("assistant.state.extra", "assistant.*")
        assert not topic_matches("assistant", "assistant.*")

    def test_multi_segment_wildcard(self):
        assert topic_matches("assistant.state", "assistant.**")
        assert topic_matches("assistant.a.b", "assistant.**")
        assert not topic_matches("assistant", "assistant.**")
        assert not topic_matches("ui.settings", "assistant.**")
