"""Integration tests for watching keys."""

import asyncio
from contextlib import aclosing

import httpx
import pytest

from etcdv2 import (
    Action,
    ClientConfig,
    EtcdClient,
    EtcdDecodeError,
    EventIndexClearedError,
    RetryConfig,
    RetryExhaustedError,
    RetryPolicy,
    resilient_watch,
)
from tests.integration.helpers.mock_server import MockEtcdServer

FAST_RETRY = RetryConfig(max_attempts=3, initial_delay_ms=1, max_delay_ms=5, jitter=False)


def change_body(key: str, value: str, index: int) -> dict:
    return {
        "action": "set",
        "node": {"key": key, "value": value, "createdIndex": index, "modifiedIndex": index},
    }


@pytest.fixture
def mock_server():
    """Create a fresh in-memory server with a short event history."""
    return MockEtcdServer(history_size=5)


@pytest.fixture
async def client(mock_server):
    """Create a client wired to the mock server."""
    config = ClientConfig(host="etcd.test", retry=FAST_RETRY)
    async with EtcdClient(config, http_transport=mock_server.transport()) as client:
        yield client


async def take(stream, count: int):
    return [await stream.__anext__() for _ in range(count)]


@pytest.mark.asyncio
class TestWait:
    """Test single long-poll waits."""

    async def test_wait_query(self, client, mock_server):
        """wait sends wait=true plus only the parameters given."""
        await client.set("/foo", "one")
        response = await client.wait("/foo", wait_index=1, recursive=True, quorum=True)

        assert response.node.value == "one"
        assert mock_server.requests[-1].url.params.multi_items() == [
            ("wait", "true"),
            ("waitIndex", "1"),
            ("recursive", "true"),
            ("quorum", "true"),
        ]

    async def test_wait_blocks_until_change(self, client):
        """wait without an index returns the next change from now."""
        await client.set("/foo", "old")
        pending = asyncio.create_task(client.wait("/foo"))
        await asyncio.sleep(0.01)
        assert not pending.done()

        await client.set("/foo", "new")
        response = await asyncio.wait_for(pending, timeout=1)
        assert response.node.value == "new"
        assert response.prev_node.value == "old"


@pytest.mark.asyncio
class TestWatch:
    """Test continuous watches."""

    async def test_wait_index_follows_modified_index(self, client, mock_server):
        """Responses with modifiedIndex 7 then 9 lead to waitIndex 8 then 10."""
        for index, value in [(7, "a"), (9, "b")]:
            mock_server.inject(httpx.Response(200, json=change_body("/foo", value, index)))

        async with aclosing(client.watch("/foo")) as stream:
            first, second = await take(stream, 2)
            assert [first.node.modified_index, second.node.modified_index] == [7, 9]

            # The third request is issued with the cursor advanced twice.
            mock_server.inject(httpx.Response(200, json=change_body("/foo", "c", 12)))
            await stream.__anext__()

        waits = mock_server.wait_requests()
        assert "waitIndex" not in waits[0].url.params
        assert [w.url.params["waitIndex"] for w in waits[1:]] == ["8", "10"]

    async def test_watch_sees_every_change_in_order(self, client):
        """Changes made while the consumer is busy are not lost."""
        created = await client.set("/foo", "v0")
        start = created.node.modified_index + 1
        for i in range(1, 4):
            await client.set("/foo", f"v{i}")

        async with aclosing(client.watch("/foo", wait_index=start)) as stream:
            received = await take(stream, 3)

        assert [r.node.value for r in received] == ["v1", "v2", "v3"]
        indices = [r.node.modified_index for r in received]
        assert indices == sorted(set(indices))

    async def test_recursive_watch(self, client):
        """A recursive watch reports changes below the directory."""
        stream = client.watch("/dir", recursive=True)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0.01)

        await client.set("/dir/child", "x")
        response = await asyncio.wait_for(pending, timeout=1)
        assert response.node.key == "/dir/child"

        await client.delete("/dir/child")
        response = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert response.action == Action.DELETE
        await stream.aclose()

    async def test_watch_never_sends_sorted(self, client, mock_server):
        """Watch requests carry no sorted parameter."""
        await client.set("/foo", "v")
        async with aclosing(client.watch("/foo", wait_index=1, recursive=True)) as stream:
            await stream.__anext__()
        assert "sorted" not in mock_server.wait_requests()[0].url.params

    async def test_failure_ends_watch(self, client, mock_server):
        """A compacted index ends the stream with EventIndexClearedError."""
        for i in range(10):
            await client.set("/foo", f"v{i}")

        stream = client.watch("/foo", wait_index=1)
        with pytest.raises(EventIndexClearedError) as exc_info:
            await stream.__anext__()
        assert exc_info.value.index == mock_server.index
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert len(mock_server.wait_requests()) == 1

    async def test_stop_consuming_stops_requests(self, client, mock_server):
        """Breaking out of the loop issues no further wait requests."""
        for i in range(3):
            await client.set("/foo", f"v{i}")

        async with aclosing(client.watch("/foo", wait_index=1)) as stream:
            async for response in stream:
                if response.node.value == "v1":
                    break

        await asyncio.sleep(0.01)
        assert len(mock_server.wait_requests()) == 2

    async def test_cancel_pending_wait(self, client, mock_server):
        """Cancelling the consumer abandons the in-flight wait."""
        stream = client.watch("/foo")
        task = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0.01)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await client.set("/foo", "late")
        await asyncio.sleep(0.01)
        assert len(mock_server.wait_requests()) == 1


@pytest.mark.asyncio
class TestResilientWatch:
    """Test the opt-in resilient watch helper."""

    async def test_resumes_after_transport_error(self, client, mock_server):
        """A dropped connection resumes right after the last delivered change."""
        mock_server.inject(httpx.Response(200, json=change_body("/foo", "a", 7)))
        mock_server.inject(httpx.ReadError("connection reset"))
        mock_server.inject(httpx.Response(200, json=change_body("/foo", "b", 8)))

        async with aclosing(resilient_watch(client, "/foo")) as stream:
            received = await take(stream, 2)

        assert [r.node.value for r in received] == ["a", "b"]
        waits = mock_server.wait_requests()
        assert [w.url.params.get("waitIndex") for w in waits] == [None, "8", "8"]

    async def test_resumes_after_compaction(self, client, mock_server):
        """A compacted index resumes from the current cluster index."""
        for i in range(10):
            await client.set("/foo", f"v{i}")
        current = mock_server.index

        stream = resilient_watch(client, "/foo", wait_index=1)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0.01)
        await client.set("/foo", "fresh")

        response = await asyncio.wait_for(pending, timeout=1)
        assert response.node.value == "fresh"
        waits = mock_server.wait_requests()
        assert [w.url.params["waitIndex"] for w in waits] == ["1", str(current + 1)]
        await stream.aclose()

    async def test_cleared_index_without_progress_is_bounded(self, client, mock_server):
        """Repeated 401s that do not move the index count as failed attempts."""
        for _ in range(10):
            mock_server.inject(
                httpx.Response(400, json={"errorCode": 401, "message": "cleared"})
            )

        stream = resilient_watch(client, "/foo", wait_index=1, policy=RetryPolicy(FAST_RETRY))
        with pytest.raises(RetryExhaustedError) as exc_info:
            await stream.__anext__()
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, EventIndexClearedError)
        waits = mock_server.wait_requests()
        assert [w.url.params["waitIndex"] for w in waits] == ["1", "1", "1"]

    async def test_gives_up_after_max_attempts(self, client, mock_server):
        """Consecutive transport failures end in RetryExhaustedError."""
        for _ in range(3):
            mock_server.inject(httpx.ConnectError("Connection refused"))

        stream = resilient_watch(client, "/foo", policy=RetryPolicy(FAST_RETRY))
        with pytest.raises(RetryExhaustedError) as exc_info:
            await stream.__anext__()
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, httpx.ConnectError)

    async def test_non_retryable_propagates(self, client, mock_server):
        """Decode errors are not retried."""
        mock_server.inject(httpx.Response(200, text="not json"))
        stream = resilient_watch(client, "/foo")
        with pytest.raises(EtcdDecodeError):
            await stream.__anext__()
        assert len(mock_server.requests) == 1
