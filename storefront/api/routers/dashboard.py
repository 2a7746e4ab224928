# storefront/api/routers/dashboard.py
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin
from storefront.api.results import fail, ok
from storefront.data.database import get_db
from storefront.domain.errors import ShopError
from storefront.domain.schemas import BulkOrderStatusUpdate, OrderFilters, OrderStatusUpdate
from storefront.services.dashboard_service import DashboardService

# every route here is admin only
router = APIRouter(prefix="/dashboard/orders", tags=["dashboard"], dependencies=[Depends(require_admin)])


def get_service(db: Session):
    return DashboardService(db)


@router.get("")
def list_orders(filters: Annotated[OrderFilters, Query()], db: Session = Depends(get_db)):
    return ok(get_service(db).list_orders(filters))


@router.get("/stats")
def order_stats(db: Session = Depends(get_db)):
    return ok(get_service(db).order_stats())


@router.post("/bulk-status")
def bulk_update_status(payload: BulkOrderStatusUpdate, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        updated = svc.bulk_update_status(payload.order_ids, payload.status)
        return ok({"updated": updated, "message": f"{updated} orders updated to {payload.status}"})
    except ShopError as e:
        return fail(e)


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return ok(svc.get_order(order_id))
    except ShopError as e:
        return fail(e)


@router.patch("/{order_id}/status")
def update_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return ok(svc.update_status(order_id, payload.status))
    except ShopError as e:
        return fail(e)


@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        svc.delete_order(order_id)
        return ok()
    except ShopError as e:
        return fail(e)
