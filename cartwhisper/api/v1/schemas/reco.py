# api/v1/schemas/reco.py
from pydantic import BaseModel, Field
from typing import List, Optional

from cartwhisper.domain.models.product import Product

class SyncRequest(BaseModel):
    # None -> use the catalog stored by the previous sync
    products: Optional[List[Product]] = None

class RecommendationOut(BaseModel):
    id: str
    numericId: str
    handle: Optional[str] = None
    title: Optional[str] = None
    price: Optional[float] = None
    image: Optional[str] = None
    similarity: Optional[float] = None
    reasoning: Optional[str] = None

class RecommendationsResponse(BaseModel):
    success: bool = True
    productId: str
    shop: str
    count: int
    recommendations: List[RecommendationOut] = Field(default_factory=list)

class StatsOut(BaseModel):
    shop: str
    total_recommendations: int
    products_with_recommendations: int
