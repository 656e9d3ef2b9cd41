# cartwhisper/api/v1/routers/logs.py
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException

from cartwhisper.api.deps import settings_dep
from cartwhisper.core.logging import latest_log_file

router = APIRouter(tags=["logs"])

@router.get("/logs/latest", summary="Content of the most recent sync run log")
async def latest_sync_log(settings = Depends(settings_dep)):
    path = latest_log_file(Path(settings.DATA_DIR) / "logs")
    if path is None:
        raise HTTPException(status_code=404, detail="No sync logs yet")
    return {"file": path.name, "content": path.read_text(encoding="utf-8")}
