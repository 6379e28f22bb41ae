"""
Order DTO

Canonical external shape of an order. Field declaration order is the
serialization order, so two payloads with the same content always produce
the same canonical bytes regardless of how their keys were ordered.
"""
from typing import Annotated, Any, List

from pydantic import BaseModel, Field, StrictInt, StrictStr, model_validator

# JSON integers must fit a signed 64-bit column
Int64 = Annotated[StrictInt, Field(ge=-2**63, le=2**63 - 1)]


class _Record(BaseModel):
    """Shared decoding rules: unknown keys ignored, nulls treated as absent."""

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Delivery(_Record):
    name: StrictStr = ""
    phone: StrictStr = ""
    zip: StrictStr = ""
    city: StrictStr = ""
    address: StrictStr = ""
    region: StrictStr = ""
    email: StrictStr = ""


class Payment(_Record):
    transaction: StrictStr = ""
    request_id: StrictStr = ""
    currency: StrictStr = ""
    provider: StrictStr = ""
    amount: Int64 = 0
    payment_dt: Int64 = 0  # Unix seconds
    bank: StrictStr = ""
    delivery_cost: Int64 = 0
    goods_total: Int64 = 0
    custom_fee: Int64 = 0


class Item(_Record):
    chrt_id: Int64 = 0
    track_number: StrictStr = ""
    price: Int64 = 0
    rid: StrictStr = ""
    name: StrictStr = ""
    sale: Int64 = 0
    size: StrictStr = ""
    total_price: Int64 = 0
    nm_id: Int64 = 0
    brand: StrictStr = ""
    status: Int64 = 0


class Order(_Record):
    """Root order record as delivered on the stream and served over HTTP."""

    order_uid: StrictStr = ""
    track_number: StrictStr = ""
    entry: StrictStr = ""
    delivery: Delivery = Field(default_factory=Delivery)
    payment: Payment = Field(default_factory=Payment)
    items: List[Item] = Field(default_factory=list)
    locale: StrictStr = ""
    internal_signature: StrictStr = ""
    customer_id: StrictStr = ""
    delivery_service: StrictStr = ""
    shardkey: StrictStr = ""
    sm_id: Int64 = 0
    date_created: StrictStr = ""  # RFC 3339
    oof_shard: StrictStr = ""
