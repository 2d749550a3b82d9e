from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from anonchat.api.deps import get_container
from anonchat.container import AppContainer

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
def health_root(container: AppContainer = Depends(get_container)):
    return {
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(),
        "connections": len(container.registry),
    }
