"""
auth/credentials.py

Holder for the current access token and service endpoint.
"""

from __future__ import annotations

from typing import Optional

from models import Credential


class CredentialStore:
    """Current bearer token and base endpoint.

    Token and endpoint are independent: changing the endpoint keeps the
    token, clearing the token keeps the endpoint. Only the session manager
    writes here; everything else reads. No network calls.
    """

    def __init__(self, endpoint: str = "", token: Optional[str] = None):
        self._endpoint = (endpoint or "").rstrip("/")
        self._token = token or None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def token(self) -> Optional[str]:
        return self._token

    def get(self) -> Optional[Credential]:
        """Return the credential, or None when no token is installed."""
        if not self._token:
            return None
        return Credential(token=self._token, endpoint=self._endpoint)

    def set_token(self, token: str) -> None:
        self._token = token or None

    def set_endpoint(self, endpoint: str) -> None:
        self._endpoint = (endpoint or "").rstrip("/")

    def clear(self) -> None:
        """Drop the token (the endpoint stays)."""
        self._token = None
