from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, List, Optional

class Product(BaseModel):
    """
    Catalog product as read once per sync. Accepts the Shopify-shaped payload
    (productType, variants[0].price, image.url) as well as flat fields.
    """
    id: str
    title: str = ""
    product_type: Optional[str] = Field(default=None, alias="productType")
    tags: List[str] = []
    vendor: Optional[str] = None
    collections: List[str] = []
    price: float = 0.0
    image: Optional[str] = None
    handle: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)  # immuable = safe

    @model_validator(mode="before")
    @classmethod
    def _from_shopify(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # Price comes from the first variant when present
        variants = data.get("variants") or []
        if variants and isinstance(variants[0], dict) and variants[0].get("price") is not None:
            data["price"] = variants[0]["price"]
        if data.get("price") in (None, ""):
            data["price"] = 0.0

        # Tags may arrive as a comma separated string
        tags = data.get("tags")
        if isinstance(tags, str):
            data["tags"] = [t.strip() for t in tags.split(",") if t.strip()]
        elif tags is None:
            data["tags"] = []

        # Collections: list of titles or list of {"title": ...}
        cols = data.get("collections") or []
        data["collections"] = [c.get("title", "") if isinstance(c, dict) else str(c) for c in cols]

        # Image: URL string or {"url": ...}
        image = data.get("image")
        if isinstance(image, dict):
            data["image"] = image.get("url")

        if data.get("title") is None:
            data["title"] = ""
        return data

class SimilarityEntry(BaseModel):
    product_id: str
    title: str = ""
    similarity: float = Field(ge=-1.0, le=1.0)
    model_config = ConfigDict(frozen=True) # immuable = safe

class Candidate(BaseModel):
    product_id: str
    title: str = ""
    similarity: float
    price: float
    category: Optional[str] = None
    vendor: Optional[str] = None
    image: Optional[str] = None
    handle: Optional[str] = None
    model_config = ConfigDict(frozen=True) # immuable = safe

class RecommendationRecord(BaseModel):
    source_product_id: str
    source_product_title: str
    source_product_price: float
    source_product_category: Optional[str] = None
    source_product_image: Optional[str] = None
    candidates: List[Candidate] = Field(default_factory=list, max_length=5)
    reasoning: Optional[str] = None
    low_candidates: bool = False
    model_config = ConfigDict(frozen=True) # immuable = safe

    @property
    def candidate_count(self) -> int:
        return len(self.candidates)

class PersistResult(BaseModel):
    deactivated: int = 0
    upserted: int = 0
    inactive: int = 0
    errors: int = 0

class SyncSummary(BaseModel):
    success: bool
    shop: str
    message: str = ""
    products_processed: int = 0
    similarities_computed: int = 0
    candidates_filtered: int = 0
    low_candidate_products: int = 0
    reasoning_generated: int = 0
    errors: int = 0
    recommendation_error: Optional[str] = None
    error_code: Optional[int] = None
    persisted: PersistResult = Field(default_factory=PersistResult)
    duration_ms: float = 0.0
    log_file: Optional[str] = None
