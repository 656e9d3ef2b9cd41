# cartwhisper/utils/cancel.py
from __future__ import annotations
from typing import Dict, Optional
import asyncio

from cartwhisper.core.errors import SyncCancelled

class CancelToken:
    """
    Cooperative cancellation flag for one sync run.
    The pipeline calls `raise_if_cancelled(stage)` between units of work.
    """
    def __init__(self, shop: str = ""):
        self.shop = shop
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by request") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self.cancelled:
            raise SyncCancelled(self.shop, stage)

class CancelRegistry:
    """Active sync tokens keyed by shop, so a second request can cancel a run."""
    def __init__(self):
        self._tokens: Dict[str, CancelToken] = {}

    def register(self, shop: str) -> CancelToken:
        token = CancelToken(shop)
        self._tokens[shop] = token
        return token

    def release(self, shop: str, token: CancelToken) -> None:
        # only drop the entry if a newer run did not replace it
        if self._tokens.get(shop) is token:
            del self._tokens[shop]

    def cancel(self, shop: str) -> bool:
        token = self._tokens.get(shop)
        if token is None:
            return False
        token.cancel()
        return True

    def active(self, shop: str) -> bool:
        return shop in self._tokens
