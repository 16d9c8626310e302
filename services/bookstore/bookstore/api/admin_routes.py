from fastapi import APIRouter, Depends, HTTPException

from bookstore.application.fulfillment import FulfillmentService
from bookstore.application.schemas import (
    FulfillmentCreationRead,
    FulfillmentRead,
    FulfillmentStats,
    FulfillmentUpdate,
    PendingFulfillmentRead,
    ShipRequest,
)

from .dependencies import get_fulfillment_service, require_admin

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

NOT_UPDATED = "Fulfillment not found or could not be updated"

def _updated(record):
    if record is None:
        raise HTTPException(status_code=404, detail=NOT_UPDATED)
    return record

@router.post("/orders/{order_id}/fulfillments", response_model=FulfillmentCreationRead)
def create_order_fulfillments(order_id: int, service: FulfillmentService = Depends(get_fulfillment_service)):
    report = service.create_fulfillments_report(order_id)
    if report.backend_error:
        raise HTTPException(status_code=503, detail="Order items could not be read")
    return {
        "order_id": report.order_id,
        "expected": report.expected,
        "created": report.created,
        "complete": report.complete,
    }

@router.get("/fulfillments/pending", response_model=list[PendingFulfillmentRead])
def list_pending_fulfillments(service: FulfillmentService = Depends(get_fulfillment_service)):
    return service.get_pending_fulfillments()

@router.get("/fulfillments/stats", response_model=FulfillmentStats)
def fulfillment_stats(service: FulfillmentService = Depends(get_fulfillment_service)):
    return service.get_fulfillment_stats()

@router.put("/fulfillments/{fulfillment_id}", response_model=FulfillmentRead)
def update_fulfillment(
    fulfillment_id: int,
    payload: FulfillmentUpdate,
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    return _updated(service.update_fulfillment(fulfillment_id, payload))

@router.post("/fulfillments/{fulfillment_id}/ship", response_model=FulfillmentRead)
def ship_fulfillment(
    fulfillment_id: int,
    payload: ShipRequest,
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    return _updated(service.mark_as_shipped(fulfillment_id, payload.tracking_number, payload.shipped_qty))

@router.post("/fulfillments/{fulfillment_id}/deliver", response_model=FulfillmentRead)
def deliver_fulfillment(fulfillment_id: int, service: FulfillmentService = Depends(get_fulfillment_service)):
    return _updated(service.mark_as_delivered(fulfillment_id))

@router.post("/fulfillments/{fulfillment_id}/cancel", response_model=FulfillmentRead)
def cancel_fulfillment(fulfillment_id: int, service: FulfillmentService = Depends(get_fulfillment_service)):
    return _updated(service.cancel_fulfillment(fulfillment_id))
