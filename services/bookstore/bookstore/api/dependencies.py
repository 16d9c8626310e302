from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bookstore.application.cart import CartService
from bookstore.application.catalog import CatalogService
from bookstore.application.discounts import DiscountService
from bookstore.application.fulfillment import FulfillmentService
from bookstore.application.orders import OrderService
from bookstore.application.wishlist import WishlistService
from bookstore.core_settings import get_settings
from bookstore.infrastructure.auth import AuthUser, decode_access_token
from bookstore.infrastructure.cache import get_cache
from bookstore.infrastructure.db import get_db
from bookstore.infrastructure.postgrest import PostgrestTableClient
from bookstore.infrastructure.table_client import SqlTableClient, TableClient

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_postgrest_client() -> PostgrestTableClient:
    settings = get_settings()
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("BACKEND=postgrest requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
    return PostgrestTableClient(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def close_postgrest_client() -> None:
    if get_postgrest_client.cache_info().currsize:
        get_postgrest_client().close()
        get_postgrest_client.cache_clear()


def get_table_client(db: Session = Depends(get_db)) -> TableClient:
    if get_settings().BACKEND == "postgrest":
        return get_postgrest_client()
    return SqlTableClient(db)


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[AuthUser]:
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> AuthUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing token")
    user = decode_access_token(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def is_admin(client: TableClient, user: Optional[AuthUser]) -> bool:
    if user is None:
        return False
    profile = client.select_one("profiles", "role", {"id": user.id})
    return bool(profile) and profile.get("role") == "admin"


def get_is_admin(
    user: Optional[AuthUser] = Depends(get_optional_user),
    client: TableClient = Depends(get_table_client),
) -> bool:
    return is_admin(client, user)


def require_admin(
    user: AuthUser = Depends(get_current_user),
    client: TableClient = Depends(get_table_client),
) -> AuthUser:
    if not is_admin(client, user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def get_catalog_service(client: TableClient = Depends(get_table_client)) -> CatalogService:
    return CatalogService(client, cache=get_cache())


def get_cart_service(client: TableClient = Depends(get_table_client)) -> CartService:
    return CartService(client)


def get_discount_service(client: TableClient = Depends(get_table_client)) -> DiscountService:
    return DiscountService(client)


def get_wishlist_service(client: TableClient = Depends(get_table_client)) -> WishlistService:
    return WishlistService(client)


def get_order_service(client: TableClient = Depends(get_table_client)) -> OrderService:
    return OrderService(client)


def get_fulfillment_service(client: TableClient = Depends(get_table_client)) -> FulfillmentService:
    return FulfillmentService(client)
