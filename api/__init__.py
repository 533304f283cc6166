"""
api package

Mermaid Chart REST client, its error kinds and the background job queue.
"""

from api.client import DiagramClient
from api.errors import (
    AuthorizationError,
    CredentialRejected,
    MermaidChartError,
    NetworkError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "DiagramClient",
    "MermaidChartError",
    "AuthorizationError",
    "CredentialRejected",
    "NetworkError",
    "NotFoundError",
    "ValidationError",
]
