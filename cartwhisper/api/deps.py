# cartwhisper/api/deps.py
from fastapi import Depends, Request
from cartwhisper.core.config import Settings, get_settings
from cartwhisper.db.mongo import get_db
from cartwhisper.domain.repositories.product_repo import ProductRepo
from cartwhisper.domain.repositories.recommendation_repo import RecommendationRepo
from cartwhisper.domain.services.embedding_svc import Embedder, build_embedder
from cartwhisper.domain.services.reasoning_svc import ReasoningEnricher
from cartwhisper.utils.cache import RecoCache
from cartwhisper.utils.cancel import CancelRegistry

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    # Returns the MongoDB database instance (async)
    return db

def settings_dep() -> Settings:
    return get_settings()

def recommendation_repo(db = Depends(mongo_db)) -> RecommendationRepo:
    return RecommendationRepo(db)

def product_repo(db = Depends(mongo_db)) -> ProductRepo:
    return ProductRepo(db)

# Read-through cache chosen at startup (Redis when connected, memory otherwise)
def reco_cache(request: Request) -> RecoCache:
    return request.app.state.reco_cache

def cancel_registry(request: Request) -> CancelRegistry:
    return request.app.state.cancel_registry

def embedder_dep(request: Request, settings: Settings = Depends(settings_dep)) -> Embedder:
    # one embedder per process; the model itself loads on first embed()
    if getattr(request.app.state, "embedder", None) is None:
        request.app.state.embedder = build_embedder(settings)
    return request.app.state.embedder

def enricher_dep(settings: Settings = Depends(settings_dep)) -> ReasoningEnricher:
    return ReasoningEnricher(settings)
