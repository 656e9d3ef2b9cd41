# cartwhisper/domain/repositories/product_repo.py

from __future__ import annotations
from typing import List, Sequence
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from cartwhisper.domain.models.product import Product

class ProductRepo:
    """
    Catalog snapshot per shop in the 'products' collection.
    The snapshot is what the last sync received; `position` keeps catalog order.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def ensure_indexes(self) -> None:
        await self.col.create_index([("shop", ASCENDING), ("id", ASCENDING)], unique=True, name="shop_product_unique")

    async def save_catalog(self, shop: str, products: Sequence[Product]) -> int:
        """Upsert every product and drop those no longer in the catalog. Returns products written."""
        now = datetime.now(timezone.utc)
        for position, product in enumerate(products):
            await self.col.update_one(
                {"shop": shop, "id": product.id},
                {"$set": {**product.model_dump(), "shop": shop, "position": position, "synced_at": now}},
                upsert=True,
            )
        await self.col.delete_many({"shop": shop, "id": {"$nin": [p.id for p in products]}})
        return len(products)

    async def load_catalog(self, shop: str) -> List[Product]:
        cursor = self.col.find({"shop": shop}, {"_id": 0, "shop": 0, "synced_at": 0}).sort([("position", ASCENDING)])
        return [Product.model_validate(doc) async for doc in cursor]
