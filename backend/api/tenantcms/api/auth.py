from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response

from .. import service
from ..guards import require_authenticated
from ..identity import extract_session_token
from ..models import Actor
from ..schemas import ActorOut, Envelope, LoginIn, LoginOut
from ..state import PlatformState, get_platform
from .common import ok

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Envelope[LoginOut])
def login(body: LoginIn, response: Response, platform: PlatformState = Depends(get_platform)):
    actor, token = service.login(platform.engine, platform.sessions, body.username, body.password)
    settings = platform.settings
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return ok({"user": asdict(actor), "token": token}, "Login successful")


@router.get("/session", response_model=Envelope[ActorOut])
def session(actor: Actor = Depends(require_authenticated)):
    return ok(asdict(actor))


@router.post("/logout")
def logout(request: Request, response: Response, platform: PlatformState = Depends(get_platform)) -> Dict[str, Any]:
    cookie_name = platform.settings.session_cookie_name
    service.logout(platform.sessions, extract_session_token(request, cookie_name))
    response.delete_cookie(cookie_name)
    return ok(None, "Logged out")
