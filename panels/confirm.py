"""
panels/confirm.py

Modal confirmation shown before a diagram is deleted.
"""

from __future__ import annotations

from PyQt6.QtWidgets import QMessageBox

DELETED_MESSAGE = "Item deleted successfully."
DELETE_FAILED_MESSAGE = "Failed to delete item, please try again"


def delete_prompt(title: str) -> str:
    return f"Are you sure you want to delete the item: {title}?"


def confirm_delete(parent, title: str) -> bool:
    """Ask before deleting *title*. Returns True only for an explicit Yes."""
    answer = QMessageBox.warning(
        parent,
        "Delete diagram",
        delete_prompt(title),
        QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
        QMessageBox.StandardButton.No,
    )
    return answer == QMessageBox.StandardButton.Yes
