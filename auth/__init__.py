"""
auth package

Access credential storage, session lifecycle and the Mermaid Chart
sign-in provider.
"""

from auth.credentials import CredentialStore
from auth.session import SessionManager, SessionState

__all__ = ["CredentialStore", "SessionManager", "SessionState"]
