from fastapi import APIRouter, Depends

from ...core.config import Settings
from ...core.session import Session, SessionStore
from ...api.deps import (
    get_current_session, get_form_registry, get_session_store, get_settings
)
from ...services.auth_service import AuthService
from ...services.registration import FormRegistry
from ...schemas.auth import StaffLogin, SessionResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])

def _session_response(session: Session) -> SessionResponse:
    credentials = session.credentials
    return SessionResponse(
        access_token=credentials.token,
        role=credentials.role,
        user=credentials.user,
        started_at=credentials.started_at,
    )

@router.post("/login", response_model=SessionResponse)
async def login(
    login_data: StaffLogin,
    sessions: SessionStore = Depends(get_session_store),
    forms: FormRegistry = Depends(get_form_registry),
    config: Settings = Depends(get_settings),
):
    """Log in against the hospital backend and start a session."""
    auth_service = AuthService(sessions, forms, config, sessions.transport)
    credentials = await auth_service.login(
        login_data.email, login_data.password, login_data.role
    )
    return _session_response(sessions.get(credentials.token))

@router.post("/logout")
async def logout(
    session: Session = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    forms: FormRegistry = Depends(get_form_registry),
    config: Settings = Depends(get_settings),
):
    """End the session and discard its open forms."""
    auth_service = AuthService(sessions, forms, config)
    await auth_service.logout(session.token)

    return {"message": "Successfully logged out"}

@router.get("/me", response_model=SessionResponse)
async def get_current_session_info(
    session: Session = Depends(get_current_session)
):
    """Get current session information."""
    return _session_response(session)
