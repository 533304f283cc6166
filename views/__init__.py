"""
views package

Diagram list dock and the project/document loading behind it.
"""

from views.listing import document_label, fetch_listings

__all__ = ["document_label", "fetch_listings"]
