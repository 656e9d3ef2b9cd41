"""Exception hierarchy for the CartWhisper service.

Fatal errors abort a sync run; everything else is handled where it happens.
"""

from typing import Any, Dict, Optional


class CartWhisperError(Exception):
    """Base exception carrying an HTTP status and debug details."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ModelUnavailable(CartWhisperError):
    """The embedding model could not be loaded or failed to produce a vector."""

    def __init__(self, model_name: str, error: Exception):
        super().__init__(
            message=f"Embedding model '{model_name}' unavailable: {error}",
            status_code=503,
            details={
                "model": model_name,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class CatalogFetchError(CartWhisperError):
    """The product catalog for a shop could not be loaded."""

    def __init__(self, shop: str, reason: str):
        super().__init__(
            message=f"Failed to fetch catalog for {shop}: {reason}",
            status_code=502,
            details={"shop": shop},
        )


class SyncCancelled(CartWhisperError):
    """A running sync was cancelled through its CancelToken."""

    def __init__(self, shop: str, stage: str):
        super().__init__(
            message=f"Sync for {shop} cancelled during {stage}",
            status_code=409,
            details={"shop": shop, "stage": stage},
        )


class EnrichmentError(CartWhisperError):
    """Reasoning generation failed for one product (recoverable)."""

    def __init__(self, product_id: str, error: Exception):
        super().__init__(
            message=f"Reasoning failed for {product_id}: {error}",
            status_code=502,
            details={"product_id": product_id, "error_type": type(error).__name__},
        )


class RecommendationStoreError(CartWhisperError):
    """The recommendation store could not be read."""

    def __init__(self, shop: str, product_id: str, error: Exception):
        super().__init__(
            message=f"Failed to read recommendations for {product_id}: {error}",
            status_code=500,
            details={"shop": shop, "product_id": product_id},
        )
