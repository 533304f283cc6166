"""
api/errors.py

Error kinds raised by the Mermaid Chart client and session layer.
"""

from __future__ import annotations

from typing import Optional


class MermaidChartError(Exception):
    """Base class for every error the client surfaces."""


class AuthorizationError(MermaidChartError):
    """The credential was rejected twice in a row, or no session could be obtained."""


class NetworkError(MermaidChartError):
    """Transport failure, server error, or an unexpected response."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(MermaidChartError):
    """The referenced project or document does not exist."""

    def __init__(self, resource: str, message: str = "Resource not found"):
        super().__init__(f"{message}: {resource}")
        self.resource = resource


class ValidationError(MermaidChartError):
    """Malformed identifier, theme, or content (rejected locally or by the server)."""


class CredentialRejected(MermaidChartError):
    """A single 401 response. Absorbed by the one-shot re-authentication path."""
