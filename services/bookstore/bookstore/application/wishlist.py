from typing import List

from fastapi import HTTPException

from bookstore.infrastructure.table_client import TableClient

WISHLIST = "wishlist_items"


class WishlistService:
    def __init__(self, client: TableClient):
        self.client = client

    def list_items(self, user_id: str) -> List[dict]:
        entries = self.client.select(WISHLIST, filters={"user_id": user_id}, order_by="created_at", descending=True)
        if not entries:
            return []
        items = {
            item["id"]: item
            for item in self.client.select(
                "items", "id, name, price_cents, img_url, author", {"id__in": [e["item_id"] for e in entries]}
            )
        }
        result = []
        for entry in entries:
            item = items.get(entry["item_id"])
            # Saved books that were deleted since simply drop out of the list
            if item:
                result.append({**item, "added_at": entry["created_at"]})
        return result

    def add_item(self, user_id: str, item_id: int) -> dict:
        if not self.client.select_one("items", "id", {"id": item_id}):
            raise HTTPException(status_code=404, detail="Item not found")
        existing = self.client.select_one(WISHLIST, filters={"user_id": user_id, "item_id": item_id})
        if existing:
            return existing
        return self.client.insert(WISHLIST, {"user_id": user_id, "item_id": item_id})

    def remove_item(self, user_id: str, item_id: int) -> bool:
        return self.client.delete(WISHLIST, {"user_id": user_id, "item_id": item_id}) > 0

    def clear(self, user_id: str) -> int:
        return self.client.delete(WISHLIST, {"user_id": user_id})
