from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production", "test"]
EmbeddingBackend = Literal["local", "openai"]

def _env_file_for(app_env: EnvName) -> Optional[str]:
    if app_env == "test":
        return None
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "CartWhisperAI"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = ""
    MONGO_DB: str = "cartwhisper"

    # Redis (optional, memory cache is used without it)
    REDIS_URL: str = ""

    # Embeddings
    EMBEDDING_BACKEND: EmbeddingBackend = "local"
    EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
    OPENAI_API_KEY: str = ""
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    similarity_top_n: int = 10

    # Reasoning (OpenAI-compatible chat endpoint, DeepSeek by default)
    REASONING_ENABLED: bool = True
    REASONING_API_KEY: str = ""
    REASONING_BASE_URL: str = "https://api.deepseek.com/v1"
    REASONING_MODEL: str = "deepseek-chat"
    reasoning_timeout_s: float = 30.0
    reasoning_max_tokens: int = 200
    reasoning_max_retries: int = 3
    reasoning_backoff_base_s: float = 1.0
    reasoning_backoff_cap_s: float = 5.0
    reasoning_concurrency: int = 4
    reasoning_limit: int = 20                 # products enriched per sync run

    # Read-through cache
    reco_cache_ttl: int = 3600                # 1 hour
    reco_cache_stale_grace: int = 24 * 3600   # stale copies kept for backend outages
    reco_cache_sweep_interval: int = 600      # 10 minutes
    store_read_retries: int = 3

    # Files (exports and per-run logs)
    DATA_DIR: str = "data"
    EXPORT_FILES: bool = True

    # API
    ALLOWED_ORIGINS: str = ""

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True, extra="ignore")

    @property
    def reasoning_available(self) -> bool:
        return self.REASONING_ENABLED and bool(self.REASONING_API_KEY)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
