"""
Order lookup endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from orderhub.errors import InvalidFormatError, MissingIdentifierError, StorageError
from orderhub.services.order_service import OrderService
from orderhub.utils.logger import log

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(request: Request) -> OrderService:
    """Service instance created in the app lifespan"""
    return request.app.state.order_service


@router.get("", include_in_schema=False)
@router.get("/")
def missing_order_id():
    """An empty id is a client error."""
    raise HTTPException(status_code=400, detail="missing order id")


@router.get("/{order_uid}")
def get_order(order_uid: str, service: OrderService = Depends(get_order_service)):
    """
    Get an order by order_uid.

    Served from the in-memory cache when present, otherwise from the
    database (which also fills the cache for next time).
    """
    try:
        data = service.get_by_id(order_uid)
    except MissingIdentifierError:
        raise HTTPException(status_code=400, detail="missing order id")
    except (StorageError, InvalidFormatError) as e:
        log.error(f"get order {order_uid}: {e}")
        raise HTTPException(status_code=500, detail="internal error")

    if data is None:
        raise HTTPException(status_code=404, detail="order not found")

    return Response(content=data, media_type="application/json")
