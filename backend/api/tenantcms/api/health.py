from fastapi import APIRouter, Depends

from ..db import db_ping
from ..state import PlatformState, get_platform

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz(platform: PlatformState = Depends(get_platform)):
    db_ping(platform.engine)
    return {"status": "ready", "db": "ok"}
