"""
Order normalizer

Turns raw stream bytes into an Order and its canonical JSON bytes.
The canonical form is what the cache holds and what the HTTP endpoint serves.
"""
import json
from typing import Tuple

from pydantic import ValidationError

from orderhub.errors import InvalidFormatError, MissingIdentifierError
from orderhub.schemas.order import Order


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"


def decode(raw: bytes) -> Tuple[Order, bytes]:
    """
    Parse a payload into an Order and its canonical bytes.

    Raises:
        InvalidFormatError: payload is not UTF-8 JSON of the expected shape
        MissingIdentifierError: order_uid is empty
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidFormatError(f"invalid json: {e}") from e

    if not isinstance(data, dict):
        raise InvalidFormatError(f"expected a JSON object, got {type(data).__name__}")

    try:
        order = Order.model_validate(data)
    except ValidationError as e:
        raise InvalidFormatError(_describe(e)) from e

    if not order.order_uid:
        raise MissingIdentifierError()

    return order, canonical_bytes(order)


def canonical_bytes(order: Order) -> bytes:
    """Compact JSON in DTO field order."""
    return order.model_dump_json().encode("utf-8")


def normalize(raw: bytes) -> bytes:
    """Canonical bytes for a payload. Idempotent on its own output."""
    return decode(raw)[1]
