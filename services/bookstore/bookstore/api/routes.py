from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from bookstore.application.cart import CartService, badge_label, summarize
from bookstore.application.catalog import CatalogService
from bookstore.application.discounts import DiscountService
from bookstore.application.fulfillment import CancellationReason, FulfillmentService
from bookstore.application.orders import OrderService
from bookstore.application.schemas import (
    BookDetailRead,
    CancellationRead,
    CartCountRead,
    CartItemAdd,
    CartItemUpdate,
    CartLineRead,
    CartRead,
    CheckoutRead,
    CheckoutRequest,
    DiscountApply,
    DiscountedCartRead,
    DiscountValidationRead,
    FulfillmentRead,
    ItemRead,
    OrderRead,
    WishlistEntryRead,
)
from bookstore.application.wishlist import WishlistService
from bookstore.core_settings import get_settings
from bookstore.infrastructure.auth import AuthUser

from .dependencies import (
    get_cart_service,
    get_catalog_service,
    get_current_user,
    get_discount_service,
    get_fulfillment_service,
    get_is_admin,
    get_optional_user,
    get_order_service,
    get_wishlist_service,
)

catalog_router = APIRouter(tags=["catalog"])
cart_router = APIRouter(prefix="/cart", tags=["cart"])
wishlist_router = APIRouter(prefix="/wishlist", tags=["wishlist"])
orders_router = APIRouter(prefix="/orders", tags=["orders"])

# --- Catalog ---

@catalog_router.get("/items", response_model=list[ItemRead])
def list_items(
    q: Optional[str] = None,
    sort: Optional[str] = Query(None, pattern="^(created_at|name|price_low|price_high)$"),
    available: bool = False,
    admin: bool = Depends(get_is_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.list_items(q=q, sort=sort, available=available, is_admin=admin)

@catalog_router.get("/items/{item_id}", response_model=BookDetailRead)
def get_book_detail(
    item_id: int,
    admin: bool = Depends(get_is_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.book_detail(item_id, is_admin=admin)

@catalog_router.get("/sales", response_model=list[ItemRead])
def list_sales(
    q: Optional[str] = None,
    sort: str = "discount",
    availability: str = "1",
    price_min: float = Query(0, ge=0),
    price_max: float = Query(100, ge=0),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.sale_items(q=q, sort=sort, availability=availability, price_min=price_min, price_max=price_max)

# --- Cart ---

def _cart_response(service: CartService, user_id: str, pct_off: int = 0) -> dict:
    lines = service.list_items(user_id)
    return {"lines": lines, "summary": summarize(lines, pct_off, get_settings().TAX_RATE).dict()}

@cart_router.get("", response_model=CartRead)
def get_cart(user: AuthUser = Depends(get_current_user), service: CartService = Depends(get_cart_service)):
    return _cart_response(service, user.id)

@cart_router.get("/count", response_model=CartCountRead)
def get_cart_count(
    user: Optional[AuthUser] = Depends(get_optional_user),
    service: CartService = Depends(get_cart_service),
):
    count = service.count_items(user.id) if user else 0
    return {"count": count, "label": badge_label(count)}

@cart_router.post("/items", response_model=CartLineRead, status_code=201)
def add_to_cart(
    payload: CartItemAdd,
    user: AuthUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return service.add_item(user.id, payload.item_id, payload.qty)

@cart_router.put("/items/{item_id}", response_model=CartRead)
def update_cart_item(
    item_id: int,
    payload: CartItemUpdate,
    user: AuthUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    service.update_quantity(user.id, item_id, payload.qty)
    return _cart_response(service, user.id)

@cart_router.delete("/items/{item_id}", status_code=204)
def remove_cart_item(
    item_id: int,
    user: AuthUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    if not service.remove_item(user.id, item_id):
        raise HTTPException(status_code=404, detail="Item not in cart")
    return Response(status_code=204)

@cart_router.post("/discount", response_model=DiscountedCartRead)
def apply_discount(
    payload: DiscountApply,
    user: AuthUser = Depends(get_current_user),
    cart: CartService = Depends(get_cart_service),
    discounts: DiscountService = Depends(get_discount_service),
):
    validation = discounts.validate_code(payload.code)
    lines = cart.list_items(user.id)
    summary = summarize(lines, validation.pct_off, get_settings().TAX_RATE)
    return {"discount": DiscountValidationRead(**validation.__dict__), "summary": summary.dict()}

# --- Wishlist ---

@wishlist_router.get("", response_model=list[WishlistEntryRead])
def get_wishlist(user: AuthUser = Depends(get_current_user), service: WishlistService = Depends(get_wishlist_service)):
    return service.list_items(user.id)

@wishlist_router.post("/{item_id}", status_code=201)
def add_to_wishlist(
    item_id: int,
    user: AuthUser = Depends(get_current_user),
    service: WishlistService = Depends(get_wishlist_service),
):
    entry = service.add_item(user.id, item_id)
    return {"item_id": entry["item_id"], "added_at": entry["created_at"]}

@wishlist_router.delete("/{item_id}", status_code=204)
def remove_from_wishlist(
    item_id: int,
    user: AuthUser = Depends(get_current_user),
    service: WishlistService = Depends(get_wishlist_service),
):
    if not service.remove_item(user.id, item_id):
        raise HTTPException(status_code=404, detail="Item not in wishlist")
    return Response(status_code=204)

@wishlist_router.delete("", status_code=204)
def clear_wishlist(user: AuthUser = Depends(get_current_user), service: WishlistService = Depends(get_wishlist_service)):
    service.clear(user.id)
    return Response(status_code=204)

# --- Orders ---

@orders_router.post("", response_model=CheckoutRead, status_code=201)
def checkout(
    payload: CheckoutRequest,
    user: AuthUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.place_order(user, payload.discount_code)

@orders_router.get("", response_model=list[OrderRead])
def list_orders(user: AuthUser = Depends(get_current_user), service: OrderService = Depends(get_order_service)):
    return service.list_orders(user.id)

@orders_router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    user: AuthUser = Depends(get_current_user),
    admin: bool = Depends(get_is_admin),
    service: OrderService = Depends(get_order_service),
):
    return service.get_order(order_id, user_id=None if admin else user.id)

@orders_router.get("/{order_id}/fulfillments", response_model=list[FulfillmentRead])
def get_order_fulfillments(
    order_id: int,
    user: AuthUser = Depends(get_current_user),
    admin: bool = Depends(get_is_admin),
    orders: OrderService = Depends(get_order_service),
    fulfillments: FulfillmentService = Depends(get_fulfillment_service),
):
    orders.get_order(order_id, user_id=None if admin else user.id)
    return fulfillments.get_fulfillments_by_order_id(order_id)

@orders_router.get("/{order_id}/cancellable", response_model=CancellationRead)
def get_order_cancellable(
    order_id: int,
    user: AuthUser = Depends(get_current_user),
    admin: bool = Depends(get_is_admin),
    orders: OrderService = Depends(get_order_service),
    fulfillments: FulfillmentService = Depends(get_fulfillment_service),
):
    orders.get_order(order_id, user_id=None if admin else user.id)
    outcome = fulfillments.check_cancellation(order_id)
    return {"order_id": order_id, "ok": outcome.ok, "reason": outcome.reason.value}

@orders_router.post("/{order_id}/cancel", response_model=CancellationRead)
def cancel_order(
    order_id: int,
    user: AuthUser = Depends(get_current_user),
    admin: bool = Depends(get_is_admin),
    orders: OrderService = Depends(get_order_service),
    fulfillments: FulfillmentService = Depends(get_fulfillment_service),
):
    orders.get_order(order_id, user_id=None if admin else user.id)
    outcome = fulfillments.try_cancel_order(order_id)
    if outcome.reason == CancellationReason.BACKEND_ERROR:
        raise HTTPException(status_code=503, detail="Order could not be cancelled, try again later")
    if outcome.reason != CancellationReason.CANCELLED:
        raise HTTPException(status_code=409, detail=f"Order cannot be cancelled: {outcome.reason.value}")
    return {"order_id": order_id, "ok": True, "reason": outcome.reason.value}
