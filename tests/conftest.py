"""
Pytest configuration and shared fixtures

Mongo is replaced by a small in-memory double of the Motor collection API
(only the calls the repositories make). Redis comes from fakeredis.
"""

import os

os.environ.setdefault("APP_ENV", "test")

import copy
import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import numpy as np
import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis_aioredis

from cartwhisper.core.config import Settings
from cartwhisper.domain.models.product import Product


# ---------------------------------------------------------------------------
# In-memory Motor double
# ---------------------------------------------------------------------------

def _matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        value = doc.get(key)
        if isinstance(expected, dict):
            if "$in" in expected and value not in expected["$in"]:
                return False
            if "$nin" in expected and value in expected["$nin"]:
                return False
        elif value != expected:
            return False
    return True


def _project(doc: dict, projection: Optional[dict]) -> dict:
    out = copy.deepcopy(doc)
    for key, flag in (projection or {}).items():
        if not flag:
            out.pop(key, None)
    return out


class FakeCursor:
    def __init__(self, docs: List[dict]):
        self._docs = docs
        self._limit = 0

    def sort(self, keys):
        for key, direction in reversed(keys):
            self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def __aiter__(self):
        docs = self._docs[: self._limit] if self._limit else self._docs
        for doc in docs:
            yield doc

    def close(self):
        pass


class FakeCollection:
    """Subset of AsyncIOMotorCollection backed by a list of dicts."""

    def __init__(self, name: str):
        self.name = name
        self.docs: List[dict] = []
        self.indexes: Dict[str, Any] = {}
        self._ids = itertools.count(1)
        # op name -> exception raised on every call (failure injection)
        self.fail: Dict[str, Exception] = {}
        self.fail_when = None  # optional predicate(filter) for update_one

    def _maybe_fail(self, op: str):
        if op in self.fail:
            raise self.fail[op]

    async def create_index(self, keys, **kwargs):
        name = kwargs.get("name") or "_".join(k for k, _ in keys)
        self.indexes[name] = (keys, kwargs)
        return name

    async def update_one(self, query: dict, update: dict, upsert: bool = False):
        self._maybe_fail("update_one")
        if self.fail_when is not None and self.fail_when(query):
            raise RuntimeError("write rejected")
        for doc in self.docs:
            if _matches(doc, query):
                before = dict(doc)
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=int(doc != before), upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
        doc.update(update.get("$set", {}))
        doc.update(update.get("$setOnInsert", {}))
        doc["_id"] = next(self._ids)
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])

    async def update_many(self, query: dict, update: dict):
        self._maybe_fail("update_many")
        modified = 0
        for doc in self.docs:
            if _matches(doc, query):
                before = dict(doc)
                doc.update(update.get("$set", {}))
                modified += int(doc != before)
        return SimpleNamespace(matched_count=modified, modified_count=modified)

    async def count_documents(self, query: dict) -> int:
        self._maybe_fail("count_documents")
        return sum(1 for d in self.docs if _matches(d, query))

    async def delete_many(self, query: dict):
        keep = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)

    async def distinct(self, key: str, query: Optional[dict] = None) -> list:
        values = []
        for d in self.docs:
            if _matches(d, query or {}) and d.get(key) not in values:
                values.append(d.get(key))
        return values

    def find(self, query: Optional[dict] = None, projection: Optional[dict] = None) -> FakeCursor:
        self._maybe_fail("find")
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query or {})])

    async def find_one(self, query: Optional[dict] = None, projection: Optional[dict] = None):
        for d in self.docs:
            if _matches(d, query or {}):
                return _project(d, projection)
        return None


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, name: str):
        return {"ok": 1}


# ---------------------------------------------------------------------------
# Embedders and LLM client doubles
# ---------------------------------------------------------------------------

class HashingEmbedder:
    """Bag-of-words vector: identical texts give identical vectors, empty text a zero vector."""

    name = "hashing-test"

    def __init__(self, dim: int = 32, fail_at: Optional[int] = None):
        self.dim = dim
        self.fail_at = fail_at
        self.calls = 0
        self.texts: List[str] = []

    async def embed(self, text: str) -> np.ndarray:
        from cartwhisper.core.errors import ModelUnavailable

        self.calls += 1
        self.texts.append(text)
        if self.fail_at is not None and self.calls == self.fail_at:
            raise ModelUnavailable(self.name, RuntimeError("model crashed"))
        vec = np.zeros(self.dim, dtype=np.float64)
        for word in text.lower().split():
            vec[sum(map(ord, word)) % self.dim] += 1.0
        return vec


class FakeCompletions:
    def __init__(self, outcomes):
        # each outcome: a string (content) or an exception instance; the last one repeats
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes[min(len(self.calls) - 1, len(self.outcomes) - 1)]
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(
            model=kwargs.get("model"),
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
            choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))],
        )


class FakeChatClient:
    def __init__(self, *outcomes):
        self.chat = SimpleNamespace(completions=FakeCompletions(outcomes or ("They pair well together.",)))

    @property
    def calls(self) -> List[dict]:
        return self.chat.completions.calls


async def no_sleep(_delay: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        APP_ENV="test",
        DATA_DIR=str(tmp_path / "data"),
        MONGO_URI="",
        REDIS_URL="",
        REASONING_API_KEY="",
        reasoning_backoff_base_s=0.0,
    )


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture
async def fake_redis():
    """Provide a fakeredis asyncio client for Redis-backed tests."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


def make_product(pid: str, title: str, price: float, product_type: Optional[str], **extra) -> Product:
    return Product(id=f"gid://shopify/Product/{pid}", title=title, price=price, product_type=product_type, **extra)


@pytest.fixture
def shoe_catalog() -> List[Product]:
    return [
        make_product("1", "Running Shoe", 50.0, "Shoes", tags=["running", "sport"], vendor="Acme"),
        make_product("2", "Trail Running Shoe", 48.0, "Shoes", tags=["running", "trail"], vendor="Acme"),
        make_product("3", "Running Sock", 12.0, "Socks", tags=["running", "sport"], vendor="Acme"),
        make_product("4", "Sport Water Bottle", 15.0, "Accessories", tags=["sport"], vendor="Acme"),
        make_product("5", "Running Jacket", 90.0, "Apparel", tags=["running"], vendor="Acme"),
    ]
