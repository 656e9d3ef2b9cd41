from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from cartwhisper.core.config import get_settings
from cartwhisper.core.errors import CartWhisperError
from cartwhisper.core.lifespan import lifespan
from cartwhisper.api.v1.routers.health import router as health_router
from cartwhisper.api.v1.routers.sync import router as sync_router
from cartwhisper.api.v1.routers.recommendations import router as recommendations_router
from cartwhisper.api.v1.routers.logs import router as logs_router
from cartwhisper.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

logger = logging.getLogger("cartwhisper")

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://shop.example.com,https://admin.example.com".
# The storefront widget is embedded on arbitrary shop domains, so an empty
# list opens reads to every origin.
allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=False,                        # "*" is not allowed with credentials
    allow_methods=["GET", "POST", "OPTIONS"] if allowed_origins else ["GET", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Errors -------
@app.exception_handler(CartWhisperError)
async def cartwhisper_error_handler(request: Request, exc: CartWhisperError):
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "details": exc.details},
    )

# ------- Routes -------
app.include_router(health_router)
app.include_router(sync_router)              # sync / cancel / stats
app.include_router(recommendations_router)   # storefront reads
app.include_router(logs_router)
