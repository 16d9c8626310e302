from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from bookstore.infrastructure.table_client import BackendError, TableClient
from shared.core import get_logger

from .clock import to_naive_utc, utcnow

logger = get_logger(__name__)

MSG_EMPTY = "Please enter a discount code"
MSG_INVALID = "Invalid discount code"
MSG_INACTIVE = "This discount code is no longer active"
MSG_EXHAUSTED = "This discount code has reached its usage limit"
MSG_EXPIRED = "This discount code has expired"
MSG_FAILED = "Failed to apply discount code"


@dataclass
class DiscountValidation:
    code: str
    valid: bool
    pct_off: int = 0
    error: Optional[str] = None

    @classmethod
    def rejected(cls, code: str, error: str) -> "DiscountValidation":
        return cls(code=code, valid=False, pct_off=0, error=error)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class DiscountService:
    """Validates discount codes. Codes are read only; usage counts are never touched here."""

    def __init__(self, client: TableClient, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    def validate_code(self, code: Optional[str]) -> DiscountValidation:
        code = normalize_code(code)
        if not code:
            return DiscountValidation.rejected(code, MSG_EMPTY)
        try:
            discount = self.client.select_one("discounts", filters={"code": code})
        except BackendError:
            logger.error(f"Error validating discount code {code}", exc_info=True)
            return DiscountValidation.rejected(code, MSG_FAILED)

        if not discount:
            return DiscountValidation.rejected(code, MSG_INVALID)
        if not discount.get("active"):
            return DiscountValidation.rejected(code, MSG_INACTIVE)
        max_uses = discount.get("max_uses")
        if max_uses and (discount.get("used_count") or 0) >= max_uses:
            return DiscountValidation.rejected(code, MSG_EXHAUSTED)
        expires_at = to_naive_utc(discount.get("expires_at"))
        if expires_at and expires_at < self.clock():
            return DiscountValidation.rejected(code, MSG_EXPIRED)
        return DiscountValidation(code=code, valid=True, pct_off=discount["pct_off"])
