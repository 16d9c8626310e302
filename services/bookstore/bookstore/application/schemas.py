from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from bookstore.domain.models import FulfillmentStatus

# --- Fulfillments ---

class FulfillmentCreate(BaseModel):
    order_id: int
    item_id: int
    status: FulfillmentStatus = FulfillmentStatus.PENDING.value
    shipped_qty: int = Field(0, ge=0)
    tracking_number: Optional[str] = None
    class Config:
        use_enum_values = True

class FulfillmentUpdate(BaseModel):
    status: Optional[FulfillmentStatus] = None
    shipped_qty: Optional[int] = Field(None, ge=0)
    tracking_number: Optional[str] = None
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    class Config:
        use_enum_values = True

class ShipRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1)
    shipped_qty: Optional[int] = Field(None, ge=0)

class FulfillmentRead(BaseModel):
    id: int
    order_id: int
    item_id: int
    # Plain string so rows with unexpected statuses still serialize
    status: str
    shipped_qty: int = 0
    tracking_number: Optional[str] = None
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PendingOrderInfo(BaseModel):
    id: int
    customer_email: Optional[str] = None
    created_at: Optional[datetime] = None

class PendingItemInfo(BaseModel):
    name: Optional[str] = None
    img_url: Optional[str] = None
    author: Optional[str] = None

class PendingFulfillmentRead(FulfillmentRead):
    orders: Optional[PendingOrderInfo] = None
    items: Optional[PendingItemInfo] = None

class FulfillmentStats(BaseModel):
    pending: int = 0
    processing: int = 0
    shipped: int = 0
    delivered: int = 0
    cancelled: int = 0

class FulfillmentCreationRead(BaseModel):
    order_id: int
    expected: int
    created: int
    complete: bool

class CancellationRead(BaseModel):
    order_id: int
    ok: bool
    reason: str

# --- Catalog ---

class ItemRead(BaseModel):
    id: int
    name: str
    author: Optional[str] = None
    description: Optional[str] = None
    price_cents: int
    sale_price_cents: Optional[int] = None
    sale_percentage: Optional[float] = None
    on_sale: bool = False
    stock: int = 0
    img_url: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class RelatedItemRead(BaseModel):
    id: int
    name: str
    price_cents: int
    img_url: Optional[str] = None
    stock: int = 0

class ReviewRead(BaseModel):
    name: str
    rating: int
    date: datetime
    text: str

class BookMetadataRead(BaseModel):
    author: str
    publication_date: datetime
    description: str
    reviews: list[ReviewRead]

class BookDetailRead(BaseModel):
    item: ItemRead
    metadata: BookMetadataRead
    author_bio: str
    related: list[RelatedItemRead] = []

# --- Cart & discounts ---

class CartItemAdd(BaseModel):
    item_id: int
    qty: int = Field(1, ge=1)

class CartItemUpdate(BaseModel):
    # 0 removes the line
    qty: int = Field(..., ge=0)

class CartLineItem(BaseModel):
    id: int
    name: str
    price_cents: int
    img_url: Optional[str] = None
    stock: int = 0

class CartLineRead(BaseModel):
    cart_id: int
    item_id: int
    qty: int
    item: Optional[CartLineItem] = None

class CartSummaryRead(BaseModel):
    subtotal_cents: int
    discount_pct: int = 0
    discount_cents: int = 0
    taxable_cents: int
    tax_cents: int
    total_cents: int

class CartRead(BaseModel):
    lines: list[CartLineRead]
    summary: CartSummaryRead

class CartCountRead(BaseModel):
    count: int
    label: Optional[str] = None

class DiscountApply(BaseModel):
    code: str

class DiscountValidationRead(BaseModel):
    code: str
    valid: bool
    pct_off: int = 0
    error: Optional[str] = None

class DiscountedCartRead(BaseModel):
    discount: DiscountValidationRead
    summary: CartSummaryRead

# --- Wishlist ---

class WishlistEntryRead(BaseModel):
    id: int
    name: str
    price_cents: int
    img_url: Optional[str] = None
    author: Optional[str] = None
    added_at: Optional[datetime] = None

# --- Orders ---

class CheckoutRequest(BaseModel):
    discount_code: Optional[str] = None

class OrderItemRead(BaseModel):
    id: int
    item_id: int
    qty: int
    unit_price_cents: int

class OrderRead(BaseModel):
    id: int
    user_id: str
    customer_email: Optional[str] = None
    subtotal_cents: int
    discount_code: Optional[str] = None
    discount_pct: int = 0
    discount_cents: int = 0
    tax_cents: int
    total_cents: int
    created_at: Optional[datetime] = None
    items: list[OrderItemRead] = []

class CheckoutRead(OrderRead):
    fulfillments_created: bool
