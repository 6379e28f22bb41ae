"""
Order Data Models

Relational layout of an order: the root row keeps the raw payload,
delivery and payment are 1:1, items are 1:N and rewritten on every save.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, BigInteger, ForeignKey

from orderhub.models.base import Base


class OrderRecord(Base):
    """Order root - one row per order_uid"""
    __tablename__ = "orders"

    order_uid = Column(String, primary_key=True)
    track_number = Column(String, index=True)
    entry = Column(String)
    locale = Column(String)
    internal_signature = Column(String)
    customer_id = Column(String, index=True)
    delivery_service = Column(String)
    shardkey = Column(String)
    sm_id = Column(BigInteger)
    date_created = Column(DateTime(timezone=True), nullable=False)
    oof_shard = Column(String)

    # Payload exactly as received on the stream
    raw = Column(Text, nullable=False)


class DeliveryRecord(Base):
    """Recipient contact and address (1:1 with orders)"""
    __tablename__ = "deliveries"

    order_uid = Column(String, ForeignKey("orders.order_uid", ondelete="CASCADE"), primary_key=True)
    name = Column(String)
    phone = Column(String)
    zip = Column(String)
    city = Column(String)
    address = Column(Text)
    region = Column(String)
    email = Column(String)


class PaymentRecord(Base):
    """Payment details (1:1 with orders)"""
    __tablename__ = "payments"

    order_uid = Column(String, ForeignKey("orders.order_uid", ondelete="CASCADE"), primary_key=True)
    transaction = Column(String)
    request_id = Column(String)
    currency = Column(String)
    provider = Column(String)
    amount = Column(BigInteger)
    payment_dt = Column(BigInteger)  # Unix seconds
    bank = Column(String)
    delivery_cost = Column(BigInteger)
    goods_total = Column(BigInteger)
    custom_fee = Column(BigInteger)


class ItemRecord(Base):
    """Order line items (1:N, replaced wholesale per save)"""
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_uid = Column(String, ForeignKey("orders.order_uid", ondelete="CASCADE"), index=True, nullable=False)
    chrt_id = Column(BigInteger)
    track_number = Column(String)
    price = Column(BigInteger)
    rid = Column(String)
    name = Column(String)
    sale = Column(BigInteger)
    size = Column(String)
    total_price = Column(BigInteger)
    nm_id = Column(BigInteger)
    brand = Column(String)
    status = Column(BigInteger)
