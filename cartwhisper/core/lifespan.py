# cartwhisper/core/lifespan.py
from contextlib import asynccontextmanager, suppress
import asyncio
import logging

from fastapi import FastAPI
from cartwhisper.db import mongo, redis as r
from cartwhisper.core.config import get_settings
from cartwhisper.domain.repositories.product_repo import ProductRepo
from cartwhisper.domain.repositories.recommendation_repo import RecommendationRepo
from cartwhisper.utils.cache import MemoryTTLCache, RedisTTLCache
from cartwhisper.utils.cancel import CancelRegistry

logger = logging.getLogger(__name__)


async def _sweep_forever(cache, interval: int):
    while True:
        await asyncio.sleep(interval)
        await cache.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    if settings.MONGO_URI:
        await mongo.connect()
        try:
            db = mongo.get_db()
            await RecommendationRepo(db).ensure_indexes()
            await ProductRepo(db).ensure_indexes()
        except Exception as e:
            logger.warning(f"Index creation skipped: {e}")
    else:
        logger.warning("No MONGO_URI provided, skipping Mongo connection")

    # Redis optionnel
    await r.connect()
    redis_client = r.get_redis()
    if redis_client is not None:
        app.state.reco_cache = RedisTTLCache(
            redis_client,
            default_ttl=settings.reco_cache_ttl,
            stale_grace=settings.reco_cache_stale_grace,
        )
    else:
        app.state.reco_cache = MemoryTTLCache(default_ttl=settings.reco_cache_ttl)
    app.state.cancel_registry = CancelRegistry()
    app.state.embedder = None  # built on first sync, model loads lazily
    sweeper = asyncio.create_task(_sweep_forever(app.state.reco_cache, settings.reco_cache_sweep_interval))

    # Application runs
    yield

    # --- Shutdown ---
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await r.disconnect()
    if settings.MONGO_URI:
        await mongo.disconnect()
        logger.info("Mongo disconnected")
