# cartwhisper/domain/repositories/recommendation_repo.py

from __future__ import annotations
from typing import Iterable, List, Sequence, Union
from datetime import datetime, timezone
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from cartwhisper.domain.models.product import PersistResult, RecommendationRecord

logger = logging.getLogger(__name__)

class RecommendationRepo:
    """
    Recommendation store backed by the 'recommendations' collection.
    One document per (shop, source_product_id, recommended_product_id);
    superseded rows are kept with is_active=False.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "recommendations"):
        self.col = db[collection_name]

    async def ensure_indexes(self) -> None:
        await self.col.create_index(
            [("shop", ASCENDING), ("source_product_id", ASCENDING), ("recommended_product_id", ASCENDING)],
            unique=True,
            name="shop_source_recommended_unique",
        )
        await self.col.create_index(
            [("shop", ASCENDING), ("source_product_id", ASCENDING), ("is_active", ASCENDING), ("priority", DESCENDING)],
            name="active_by_source",
        )

    # ----- Writes -----------------------------------------------------------

    async def persist(self, shop: str, records: Iterable[RecommendationRecord]) -> PersistResult:
        """
        Make `records` the shop's active set: mark every existing row inactive,
        then upsert one row per candidate with priority = count - index.
        Safe to repeat with the same input.
        """
        result = PersistResult()
        deactivated = await self.col.update_many({"shop": shop}, {"$set": {"is_active": False}})
        result.deactivated = deactivated.modified_count
        logger.info(f"Marked {result.deactivated} existing recommendations inactive for shop={shop}")

        now = datetime.now(timezone.utc)
        for record in records:
            count = len(record.candidates)
            for index, candidate in enumerate(record.candidates):
                key = {
                    "shop": shop,
                    "source_product_id": record.source_product_id,
                    "recommended_product_id": candidate.product_id,
                }
                try:
                    await self.col.update_one(
                        key,
                        {
                            "$set": {
                                "source_product_title": record.source_product_title,
                                "source_product_price": record.source_product_price,
                                "source_product_category": record.source_product_category,
                                "source_product_image": record.source_product_image,
                                "recommended_product_handle": candidate.handle,
                                "recommended_product_title": candidate.title,
                                "recommended_product_price": candidate.price,
                                "recommended_product_category": candidate.category,
                                "recommended_product_vendor": candidate.vendor,
                                "recommended_product_image": candidate.image,
                                "similarity": candidate.similarity,
                                "reasoning": record.reasoning,
                                "priority": count - index,
                                "is_active": True,
                                "updated_at": now,
                            },
                            "$setOnInsert": {"created_at": now},
                        },
                        upsert=True,
                    )
                    result.upserted += 1
                except Exception as e:
                    logger.error(
                        f"Upsert failed {record.source_product_id} -> {candidate.product_id}: {e}"
                    )
                    result.errors += 1

        result.inactive = await self.col.count_documents({"shop": shop, "is_active": False})
        logger.info(
            f"Persist done shop={shop} upserted={result.upserted} inactive={result.inactive} errors={result.errors}"
        )
        return result

    async def delete_shop(self, shop: str) -> int:
        res = await self.col.delete_many({"shop": shop})
        return res.deleted_count

    # ----- Reads ------------------------------------------------------------

    async def get_for_product(self, shop: str, product_id: Union[str, Sequence[str]], limit: int = 3) -> List[dict]:
        """
        Active recommendations for a source product, by priority then similarity.
        `product_id` may list several spellings of the same id (GID and numeric).
        """
        ids = [product_id] if isinstance(product_id, str) else list(product_id)
        cursor = (
            self.col.find(
                {"shop": shop, "source_product_id": {"$in": ids}, "is_active": True},
                {"_id": 0},
            )
            .sort([("priority", DESCENDING), ("similarity", DESCENDING)])
            .limit(limit)
        )
        return [
            {
                "id": doc["recommended_product_id"],
                "handle": doc.get("recommended_product_handle"),
                "title": doc.get("recommended_product_title"),
                "price": doc.get("recommended_product_price"),
                "category": doc.get("recommended_product_category"),
                "vendor": doc.get("recommended_product_vendor"),
                "image": doc.get("recommended_product_image"),
                "similarity": doc.get("similarity"),
                "reasoning": doc.get("reasoning"),
            }
            async for doc in cursor
        ]

    async def stats(self, shop: str) -> dict:
        total = await self.col.count_documents({"shop": shop, "is_active": True})
        sources = await self.col.distinct("source_product_id", {"shop": shop, "is_active": True})
        return {"total_recommendations": total, "products_with_recommendations": len(sources)}
