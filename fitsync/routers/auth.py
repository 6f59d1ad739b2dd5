"""OAuth authorization endpoints: provider redirect and callback."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse

from fitsync.auth.oauth import TokenExchangeError
from fitsync.dependencies import AppScheduler, FitbitSession

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("fitsync.routers.auth")


@router.get("/login")
def login(session: FitbitSession) -> RedirectResponse:
    """Send the user to the Fitbit consent page."""
    return RedirectResponse(session.authorization_url(), status_code=302)


@router.get("/fitbit")
def fitbit_callback(
    session: FitbitSession,
    scheduler: AppScheduler,
    code: str | None = None,
    error: str | None = None,
    state: str | None = None,
) -> RedirectResponse:
    """Complete authorization and start a sync.

    Without a code this is a no-op redirect to the application root.  A code
    whose state does not match the one issued by /auth/login is rejected.
    """
    if error:
        logger.warning("Fitbit authorization denied: %s", error)
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")
    if not code:
        return RedirectResponse("/", status_code=302)
    if not session.check_state(state):
        logger.warning("Fitbit callback state mismatch; ignoring code")
        raise HTTPException(status_code=400, detail="Authorization state mismatch")

    try:
        session.obtain_tokens(code)
    except TokenExchangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    scheduler.trigger_now("authorized")
    return RedirectResponse("/", status_code=302)
