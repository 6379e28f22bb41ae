"""Tests for the Redis Stream listener, using an in-process fake client."""
import threading
import time

from redis.exceptions import ResponseError

from orderhub.connectors.stream_listener import StreamListener
from orderhub.services.order_service import OrderService
from orderhub.utils.cache import OrderCache


class FakeRedis:
    """Just enough of the consumer-group API for the listener."""

    def __init__(self, new=None, pending=None):
        self.new = list(new or [])
        self.pending = list(pending or [])
        self.acked = []
        self.groups = set()
        self.closed = False
        self._lock = threading.Lock()

    def xgroup_create(self, stream, group, id="0", mkstream=False):
        if (stream, group) in self.groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        self.groups.add((stream, group))

    def xreadgroup(self, group, consumer, streams, count=None, block=None):
        (stream, start), = streams.items()
        with self._lock:
            if start == ">":
                batch, self.new = self.new[:count], self.new[count:]
            else:
                batch = [e for e in self.pending if start == "0" or e[0] > start][:count]
        if not batch and block:
            time.sleep(block / 1000)
        return [[stream.encode(), batch]] if batch else []

    def xack(self, stream, group, *ids):
        with self._lock:
            self.acked.extend(ids)
            self.pending = [e for e in self.pending if e[0] not in ids]
        return len(ids)

    def close(self):
        self.closed = True


def _listener(service, client, **kwargs):
    return StreamListener(
        service,
        client=client,
        stream="orders",
        group="orders-svc",
        consumer="test-1",
        block_ms=kwargs.pop("block_ms", 0),
        **kwargs,
    )


class TestHandleMessage:
    def test_valid_message_is_saved_and_acked(self, service, cache, sample_payload):
        client = FakeRedis()
        listener = _listener(service, client)

        assert listener.handle_message(b"1-0", {b"data": sample_payload}) is True
        assert client.acked == [b"1-0"]
        assert "b563feb7b2b84b6test" in cache

    def test_invalid_message_is_acked_and_dropped(self, service, store, cache):
        client = FakeRedis()
        listener = _listener(service, client)

        assert listener.handle_message(b"1-0", {b"data": b'{"track_number":"123"}'}) is False
        assert client.acked == [b"1-0"]
        assert store.save_calls == 0
        assert len(cache) == 0

    def test_message_without_data_field(self, service):
        client = FakeRedis()
        listener = _listener(service, client)

        assert listener.handle_message(b"1-0", {b"other": b"x"}) is False
        assert listener.handle_message(b"2-0", None) is False
        assert client.acked == [b"1-0", b"2-0"]

    def test_storage_failure_is_acked_and_not_cached(self, failing_store, sample_payload):
        cache = OrderCache()
        client = FakeRedis()
        listener = _listener(OrderService(failing_store, cache), client)

        assert listener.handle_message(b"1-0", {b"data": sample_payload}) is False
        assert client.acked == [b"1-0"]
        assert len(cache) == 0


class TestPolling:
    def test_poll_processes_batch(self, service, cache, sample_payload, minimal_payload):
        client = FakeRedis(new=[
            (b"1-0", {b"data": sample_payload}),
            (b"2-0", {b"data": minimal_payload}),
            (b"3-0", {b"data": b"not json"}),
        ])
        listener = _listener(service, client)

        count, last_id = listener.poll()

        assert count == 3
        assert last_id == b"3-0"
        assert client.acked == [b"1-0", b"2-0", b"3-0"]
        assert len(cache) == 2

    def test_poll_respects_max_inflight_batch_size(self, service, sample_payload):
        client = FakeRedis(new=[(f"{i}-0".encode(), {b"data": sample_payload}) for i in range(1, 6)])
        listener = _listener(service, client, max_inflight=2)

        count, _ = listener.poll()

        assert count == 2
        assert len(client.new) == 3

    def test_drain_pending_reprocesses_unacked(self, service, cache, sample_payload, minimal_payload):
        client = FakeRedis(pending=[
            (b"1-0", {b"data": sample_payload}),
            (b"2-0", {b"data": minimal_payload}),
            (b"3-0", None),
        ])
        listener = _listener(service, client, max_inflight=2)

        assert listener.drain_pending() == 3
        assert client.pending == []
        assert len(cache) == 2

    def test_redelivery_is_idempotent(self, service, store, sample_payload):
        client = FakeRedis(new=[
            (b"1-0", {b"data": sample_payload}),
            (b"2-0", {b"data": sample_payload}),
        ])
        listener = _listener(service, client)

        listener.poll()

        assert list(store.get_all_orders()) == ["b563feb7b2b84b6test"]


class TestLifecycle:
    def test_ensure_group_tolerates_existing_group(self, service):
        client = FakeRedis()
        listener = _listener(service, client)

        listener.ensure_group()
        listener.ensure_group()

        assert client.groups == {("orders", "orders-svc")}

    def test_start_processes_in_background_and_stops(self, service, cache, sample_payload, minimal_payload):
        client = FakeRedis(
            pending=[(b"1-0", {b"data": sample_payload})],
            new=[(b"2-0", {b"data": minimal_payload})],
        )
        listener = _listener(service, client, block_ms=10, max_inflight=4)

        listener.start()
        try:
            deadline = time.time() + 5
            while len(client.acked) < 2 and time.time() < deadline:
                time.sleep(0.01)
            assert listener.running
        finally:
            listener.stop()

        assert sorted(client.acked) == [b"1-0", b"2-0"]
        assert len(cache) == 2
        assert client.closed
        assert not listener.running
