"""Unit tests for the client request state."""

import asyncio

from message_bridge.client.request_state import (
    NO_AUTOLOAD,
    AutoLoad,
    MessageRequest,
    Ordering,
    RequestSnapshot,
)
from message_bridge.protocol.envelope import Response
from message_bridge.transport import MockChannel, TransportAdapter


def make_request(channel: MockChannel, **kwargs) -> MessageRequest:
    return MessageRequest(TransportAdapter(channel), **kwargs)


def test_auto_load_deferred_without_loop():
    """Outside an event loop the initial load waits for mount()."""
    channel = MockChannel()

    request = make_request(channel, auto_load="TASKS_GET_ALL")

    assert request.auto_load == AutoLoad("TASKS_GET_ALL")
    assert request.loading is False
    assert channel.recorded_messages == []


class TestSettlement:
    async def test_success_sets_data(self):
        channel = MockChannel()
        channel.set_response("TASKS_GET_ALL", Response.ok([{"id": "t1"}]))
        request = make_request(channel)

        response = await request.send("TASKS_GET_ALL")

        assert response.success is True
        assert request.snapshot == RequestSnapshot(data=[{"id": "t1"}], loading=False, error=None)

    async def test_failure_clears_data(self):
        channel = MockChannel()
        channel.set_response("TASKS_GET_ALL", Response.ok([1]))
        channel.set_response("TASKS_CREATE", Response.fail("Task title is required"))
        request = make_request(channel)
        await request.send("TASKS_GET_ALL")

        response = await request.send("TASKS_CREATE", {"title": ""})

        assert response.success is False
        assert request.data is None
        assert request.loading is False
        assert request.error == "Task title is required"

    async def test_loading_keeps_previous_data(self):
        channel = MockChannel()
        channel.set_response("A", Response.ok("first"))
        gate = channel.hold("B", Response.ok("second"))
        request = make_request(channel)
        await request.send("A")

        pending = asyncio.create_task(request.send("B"))
        await asyncio.sleep(0)

        assert request.loading is True
        assert request.data == "first"
        assert request.error is None

        gate.set()
        await pending
        assert request.data == "second"

    async def test_transport_failure_lands_in_error(self):
        channel = MockChannel()
        channel.set_error("USERS_GET_ALL", "Could not establish connection.")
        request = make_request(channel)

        response = await request.send("USERS_GET_ALL")

        assert response.success is False
        assert request.error == "Could not establish connection."

    async def test_listeners_see_each_snapshot(self):
        channel = MockChannel()
        channel.set_response("A", Response.ok(1))
        request = make_request(channel)
        seen = []
        unsubscribe = request.subscribe(seen.append)

        await request.send("A")
        unsubscribe()
        await request.send("A")

        assert seen == [
            RequestSnapshot(data=None, loading=True, error=None),
            RequestSnapshot(data=1, loading=False, error=None),
        ]


class TestOrdering:
    async def test_arrival_last_settled_wins(self):
        """The send issued first but settling last determines the state."""
        channel = MockChannel()
        slow_gate = channel.hold("SLOW", Response.ok("slow"))
        fast_gate = channel.hold("FAST", Response.ok("fast"))
        request = make_request(channel)

        slow = asyncio.create_task(request.send("SLOW"))
        await asyncio.sleep(0)
        fast = asyncio.create_task(request.send("FAST"))
        await asyncio.sleep(0)

        fast_gate.set()
        await fast
        assert request.data == "fast"

        slow_gate.set()
        await slow
        assert request.data == "slow"
        assert request.loading is False

    async def test_issue_discards_stale_settlement(self):
        channel = MockChannel()
        slow_gate = channel.hold("SLOW", Response.ok("slow"))
        fast_gate = channel.hold("FAST", Response.ok("fast"))
        request = make_request(channel, ordering=Ordering.ISSUE)

        slow = asyncio.create_task(request.send("SLOW"))
        await asyncio.sleep(0)
        fast = asyncio.create_task(request.send("FAST"))
        await asyncio.sleep(0)

        fast_gate.set()
        await fast
        slow_gate.set()
        slow_response = await slow

        assert slow_response.data == "slow"
        assert request.data == "fast"

    async def test_ordering_accepts_string(self):
        request = make_request(MockChannel(), ordering="issue")

        assert request.ordering is Ordering.ISSUE


class TestAutoLoad:
    async def test_auto_load_scheduled_on_creation(self):
        channel = MockChannel()
        channel.set_response("TASKS_GET_ALL", Response.ok(["t1"]))

        request = make_request(channel, auto_load="TASKS_GET_ALL")
        response = await request.mount()

        assert response.success is True
        assert request.data == ["t1"]
        assert channel.recorded_messages == [{"type": "TASKS_GET_ALL"}]

    async def test_auto_load_loading_transitions(self):
        """loading goes False -> True -> False around the initial load."""
        channel = MockChannel()
        channel.set_response("TASKS_GET_ALL", Response.ok(["t1"]))

        request = make_request(channel, auto_load="TASKS_GET_ALL")
        seen = []
        request.subscribe(seen.append)
        assert request.loading is False

        await request.mount()

        assert [snapshot.loading for snapshot in seen] == [True, False]
        assert seen[-1].data == ["t1"]

    async def test_auto_load_payload(self):
        channel = MockChannel()

        request = make_request(channel, auto_load=AutoLoad("TASKS_GET_ALL", {"limit": 5}))
        await request.mount()

        assert channel.recorded_messages == [{"type": "TASKS_GET_ALL", "data": {"limit": 5}}]

    async def test_mount_without_auto_load(self):
        channel = MockChannel()
        request = make_request(channel)

        assert await request.mount() is None
        assert channel.recorded_messages == []

    async def test_reload_resends(self):
        channel = MockChannel()
        request = make_request(channel, auto_load="TASKS_GET_ALL")
        await request.mount()

        await request.reload()

        assert len(channel.recorded_messages) == 2

    async def test_reload_without_auto_load(self):
        channel = MockChannel()
        request = make_request(channel)

        response = await request.reload()

        assert response.success is False
        assert response.error == NO_AUTOLOAD
        assert channel.recorded_messages == []
        assert request.snapshot == RequestSnapshot()


class TestLifecycle:
    async def test_reset(self):
        channel = MockChannel()
        channel.set_response("A", Response.ok("data"))
        request = make_request(channel)
        await request.send("A")

        request.reset()

        assert request.snapshot == RequestSnapshot()
        assert len(channel.recorded_messages) == 1

    async def test_unmount_ignores_later_settlement(self):
        channel = MockChannel()
        gate = channel.hold("A", Response.ok("late"))
        request = make_request(channel)

        pending = asyncio.create_task(request.send("A"))
        await asyncio.sleep(0)
        request.unmount()
        gate.set()
        response = await pending

        assert response.data == "late"
        assert request.mounted is False
        assert request.data is None

    async def test_send_after_unmount_leaves_state_alone(self):
        channel = MockChannel()
        channel.set_response("A", Response.ok("data"))
        request = make_request(channel)
        request.unmount()

        response = await request.send("A")

        assert response.data == "data"
        assert request.snapshot == RequestSnapshot()
        assert request.loading is False
