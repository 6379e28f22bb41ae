"""
Order Store

Durable persistence for orders. Each save is one transaction across the
orders, deliveries, payments and items tables: either every row commits or
none does. Upserts use the database's native ON CONFLICT so re-delivered
orders replace the previous version in place.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderhub.errors import StorageError
from orderhub.models.base import Base, get_engine, make_session_factory
from orderhub.models.order import OrderRecord, DeliveryRecord, PaymentRecord, ItemRecord
from orderhub.schemas.order import Order
from orderhub.utils.logger import log

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# Any number of fractional digits; the offset is required
_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


def parse_date_created(value: str) -> datetime:
    """RFC 3339 timestamp, or the current UTC time when it doesn't parse."""
    match = _RFC3339.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        return datetime.now(timezone.utc)

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset == "Z":
        tz = timezone.utc
    else:
        tz_hours, tz_minutes = int(offset[1:3]), int(offset[4:6])
        if tz_hours > 23 or tz_minutes > 59:
            return datetime.now(timezone.utc)
        sign = -1 if offset[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=tz_hours, minutes=tz_minutes))

    # Sub-microsecond digits are truncated
    micros = int((fraction or "").ljust(6, "0")[:6])
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
        )
    except ValueError:
        return datetime.now(timezone.utc)


class OrderStore:
    """
    SQL-backed order storage.

    Reads return the raw payload bytes stored with each order; a missing
    order is None, never an exception. Every database failure surfaces
    as StorageError.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or get_engine()
        if self.engine.dialect.name not in _UPSERT_INSERTS:
            raise ValueError(f"Unsupported database dialect: {self.engine.dialect.name}")
        self.SessionLocal = make_session_factory(self.engine)

    def ensure_schema(self) -> None:
        """Create missing tables. Safe to run on every start."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError("ensure_schema", e) from e

    def save_order(self, order: Order, raw: bytes) -> None:
        """Upsert an order and its sub-records in a single transaction."""
        raw_text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        try:
            with self.SessionLocal() as session, session.begin():
                self._upsert(session, OrderRecord, {
                    "order_uid": order.order_uid,
                    "track_number": order.track_number,
                    "entry": order.entry,
                    "locale": order.locale,
                    "internal_signature": order.internal_signature,
                    "customer_id": order.customer_id,
                    "delivery_service": order.delivery_service,
                    "shardkey": order.shardkey,
                    "sm_id": order.sm_id,
                    "date_created": parse_date_created(order.date_created),
                    "oof_shard": order.oof_shard,
                    "raw": raw_text,
                })
                self._upsert(session, DeliveryRecord, {
                    "order_uid": order.order_uid,
                    **order.delivery.model_dump(),
                })
                self._upsert(session, PaymentRecord, {
                    "order_uid": order.order_uid,
                    **order.payment.model_dump(),
                })
                self._replace_items(session, order)
        except SQLAlchemyError as e:
            log.error(f"Failed to save order {order.order_uid}: {e}")
            raise StorageError("save", e) from e

    def get_order(self, order_uid: str) -> Optional[bytes]:
        """Raw payload for one order, or None if it isn't stored."""
        try:
            with self.SessionLocal() as session:
                raw = session.execute(
                    select(OrderRecord.raw).where(OrderRecord.order_uid == order_uid)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("get", e) from e
        return raw.encode("utf-8") if raw is not None else None

    def get_all_orders(self) -> Dict[str, bytes]:
        """Full snapshot of order_uid -> raw payload. Used for warm-up only."""
        try:
            with self.SessionLocal() as session:
                rows = session.execute(select(OrderRecord.order_uid, OrderRecord.raw)).all()
        except SQLAlchemyError as e:
            raise StorageError("get_all", e) from e
        return {order_uid: raw.encode("utf-8") for order_uid, raw in rows}

    def close(self) -> None:
        self.engine.dispose()

    def _upsert(self, session: Session, model, values: Dict[str, Any]) -> None:
        table = model.__table__
        keys = [col.name for col in table.primary_key.columns]
        stmt = _UPSERT_INSERTS[self.engine.dialect.name](table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=keys,
            set_={name: stmt.excluded[name] for name in values if name not in keys},
        )
        session.execute(stmt)

    def _replace_items(self, session: Session, order: Order) -> None:
        session.execute(delete(ItemRecord).where(ItemRecord.order_uid == order.order_uid))
        if order.items:
            session.execute(
                insert(ItemRecord),
                [{"order_uid": order.order_uid, **item.model_dump()} for item in order.items],
            )
