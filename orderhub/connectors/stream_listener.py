"""
Stream Listener

Consumes order messages from a Redis Stream through a consumer group and
feeds each one to OrderService.process_incoming.

- The consumer group is the durable subscription: it is created at the
  start of the stream, so a fresh group receives every available message.
- On start the consumer re-reads its own pending (unacknowledged) entries,
  which covers messages in flight when the previous process died.
- Every entry is acknowledged once handled, saved or rejected. Rejected
  messages are logged and dropped; there is no dead-letter stream.
- At most max_inflight messages are processed concurrently.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

import redis
from redis.exceptions import RedisError, ResponseError

from orderhub.config import get_settings
from orderhub.errors import InvalidFormatError, MissingIdentifierError, StorageError
from orderhub.services.order_service import OrderService
from orderhub.utils.logger import log
from orderhub.utils.retry import calculate_backoff, retry_sync

DATA_FIELD = b"data"


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class StreamListener:
    """Redis Streams consumer driving the order service."""

    def __init__(
        self,
        service: OrderService,
        client: Optional[redis.Redis] = None,
        stream: Optional[str] = None,
        group: Optional[str] = None,
        consumer: Optional[str] = None,
        max_inflight: Optional[int] = None,
        block_ms: Optional[int] = None,
    ):
        settings = get_settings()
        self.service = service
        self.client = client or redis.Redis.from_url(
            settings.redis_url,
            socket_connect_timeout=5,
            client_name=settings.stream_consumer,
        )
        self.stream = stream or settings.stream_name
        self.group = group or settings.stream_group
        self.consumer = consumer or settings.stream_consumer
        self.max_inflight = max_inflight or settings.stream_max_inflight
        self.block_ms = block_ms if block_ms is not None else settings.stream_block_ms

        self._slots = threading.BoundedSemaphore(self.max_inflight)
        self._stop = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @retry_sync(max_attempts=5)
    def ensure_group(self) -> None:
        """Create the consumer group at the start of the stream if it doesn't exist."""
        try:
            self.client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            log.info(f"Created consumer group {self.group} on {self.stream}")
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    def start(self) -> None:
        """Subscribe and start processing in background threads."""
        if self.running:
            return
        self.ensure_group()
        self._stop.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_inflight,
            thread_name_prefix="order-worker",
        )
        self._thread = threading.Thread(target=self._run, name="stream-listener", daemon=True)
        self._thread.start()
        log.info(f"Subscribed to {self.stream} as {self.group}/{self.consumer}")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop reading, wait for in-flight messages, close the connection."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        try:
            self.client.close()
        except RedisError as e:
            log.warning(f"Stream connection close failed: {e}")
        log.info("Stream listener stopped")

    def poll(self, start_id: str = ">") -> Tuple[int, Optional[bytes]]:
        """
        Read one batch and dispatch every entry.

        start_id ">" reads new entries (blocking up to block_ms); any other id
        reads this consumer's pending entries after that id.

        Returns:
            (entries read, id of the last entry or None)
        """
        # BLOCK 0 would wait forever; treat 0 as non-blocking
        block = (self.block_ms or None) if start_id == ">" else None
        response = self.client.xreadgroup(
            self.group,
            self.consumer,
            {self.stream: start_id},
            count=self.max_inflight,
            block=block,
        )

        count = 0
        last_id = None
        for _stream, entries in response or []:
            for message_id, fields in entries:
                self._dispatch(message_id, fields)
                last_id = message_id
                count += 1
        return count, last_id

    def drain_pending(self) -> int:
        """Re-process entries delivered to this consumer but never acknowledged."""
        total = 0
        last_id: Any = "0"
        while not self._stop.is_set():
            count, batch_last = self.poll(last_id)
            if not count:
                break
            total += count
            last_id = batch_last
        if total:
            log.info(f"Re-processed {total} pending messages")
        return total

    def handle_message(self, message_id: Any, fields: Optional[Dict[Any, Any]]) -> bool:
        """
        Process one entry and acknowledge it.

        Returns:
            True if the order was saved, False if the message was rejected
        """
        with log.contextualize(msg_id=_text(message_id)):
            try:
                payload = (fields or {}).get(DATA_FIELD)
                if payload is None:
                    payload = (fields or {}).get("data")
                if payload is None:
                    raise InvalidFormatError("message has no data field")

                order_uid = self.service.process_incoming(payload)
                log.info(f"Saved order {order_uid}")
                return True
            except (InvalidFormatError, MissingIdentifierError) as e:
                log.warning(f"Skipping message: {e}")
            except StorageError as e:
                log.error(f"Dropping message: {e}")
            finally:
                self._ack(message_id)
            return False

    def _ack(self, message_id: Any) -> None:
        try:
            self.client.xack(self.stream, self.group, message_id)
        except RedisError as e:
            # Stays pending; re-read by drain_pending on the next start
            log.warning(f"Failed to ack message {_text(message_id)}: {e}")

    def _dispatch(self, message_id: Any, fields: Optional[Dict[Any, Any]]) -> None:
        # Inline until start() creates the worker pool
        if self._executor is None:
            self.handle_message(message_id, fields)
            return

        self._slots.acquire()
        future = self._executor.submit(self._handle_safely, message_id, fields)
        future.add_done_callback(lambda _f: self._slots.release())

    def _handle_safely(self, message_id: Any, fields: Optional[Dict[Any, Any]]) -> None:
        try:
            self.handle_message(message_id, fields)
        except Exception:
            log.exception(f"Unexpected error handling message {_text(message_id)}")

    def _run(self) -> None:
        attempt = 0
        drained = False
        while not self._stop.is_set():
            try:
                if not drained:
                    self.drain_pending()
                    drained = True
                self.poll(">")
                attempt = 0
            except RedisError as e:
                attempt += 1
                delay = calculate_backoff(attempt)
                log.warning(f"Stream read failed: {e}. Retrying in {delay:.1f}s...")
                if isinstance(e, ResponseError) and "NOGROUP" in str(e):
                    try:
                        self.ensure_group()
                    except RedisError as group_error:
                        log.error(f"Could not recreate consumer group: {group_error}")
                self._stop.wait(delay)
