"""Multi-platform session management."""

from .models import AuthSession, AuthSessionSummary
from .manager import SessionManager, generate_session_id

__all__ = ["AuthSession", "AuthSessionSummary", "SessionManager", "generate_session_id"]
