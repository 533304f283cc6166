"""
views/listing.py

Loads the project/document tree shown in the diagram list.
"""

from __future__ import annotations

from typing import List

from debug_trace import trace
from models import ProjectListing


def fetch_listings(client) -> List[ProjectListing]:
    """Every project with its documents, in the order the server returns them."""
    listings = []
    for project in client.list_projects():
        listings.append(ProjectListing(project, client.list_documents(project.id)))
    trace(f"listing: {len(listings)} project(s)", "API")
    return listings


def document_label(diagram) -> str:
    """Tree label for a document: its title, or its id when untitled."""
    return diagram.title or diagram.document_id
