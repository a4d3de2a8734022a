from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from typing import List, Optional

from ..clients.admin import AdminClient
from ..clients.receptionist import ReceptionistClient
from ..core.config import Settings, settings
from ..core.session import (
    security, AuthenticationError, AuthorizationError,
    Session, SessionStore, StaffRole
)
from ..services.printing import PrintQueue, build_printer
from ..services.registration import FormRegistry
from ..services.submission import SubmissionPipeline

# Process-wide state, created on first use
_session_store: Optional[SessionStore] = None
_form_registry: Optional[FormRegistry] = None
_print_queue: Optional[PrintQueue] = None

def get_settings() -> Settings:
    return settings

def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        _session_store = SessionStore(settings)
    return _session_store

def get_form_registry() -> FormRegistry:
    global _form_registry
    if _form_registry is None:
        _form_registry = FormRegistry()
    return _form_registry

def get_print_queue() -> PrintQueue:
    global _print_queue
    if _print_queue is None:
        _print_queue = PrintQueue(build_printer(settings), settings)
    return _print_queue

async def shutdown_state():
    """Close all sessions and wait for running print jobs."""
    if _print_queue is not None:
        await _print_queue.drain()
    if _session_store is not None:
        await _session_store.clear()

async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sessions: SessionStore = Depends(get_session_store),
) -> Session:
    """Resolve the bearer token to a live session."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    session = sessions.get(credentials.credentials)
    if session is None:
        raise AuthenticationError("Invalid or expired session")

    return session

# Role-based access control dependencies
def require_role(allowed_roles: List[StaffRole]):
    """Create a dependency that requires specific staff roles."""
    async def role_checker(
        session: Session = Depends(get_current_session)
    ) -> Session:
        if session.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return session

    return role_checker

async def get_receptionist_session(
    session: Session = Depends(require_role([StaffRole.RECEPTIONIST]))
) -> Session:
    """Require receptionist role."""
    return session

async def get_admin_session(
    session: Session = Depends(require_role([StaffRole.ADMIN]))
) -> Session:
    """Require admin role."""
    return session

async def get_receptionist_client(
    session: Session = Depends(get_receptionist_session)
) -> ReceptionistClient:
    return session.client("receptionist", ReceptionistClient, StaffRole.RECEPTIONIST)

async def get_admin_client(
    session: Session = Depends(get_admin_session)
) -> AdminClient:
    return session.client("admin", AdminClient, StaffRole.ADMIN)

async def get_submission_pipeline(
    client: ReceptionistClient = Depends(get_receptionist_client),
    print_queue: PrintQueue = Depends(get_print_queue),
) -> SubmissionPipeline:
    return SubmissionPipeline(client, print_queue)
