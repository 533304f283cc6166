"""
views/diagram_list.py

Dock listing the user's Mermaid Chart projects and their diagrams.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QDockWidget,
    QHBoxLayout,
    QLabel,
    QMenu,
    QProgressBar,
    QPushButton,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from models import ProjectListing
from views.listing import document_label

# Item data: ("project", project_id, title) or ("document", document_id, title)
_ROLE = Qt.ItemDataRole.UserRole
PROJECT_ITEM = "project"
DOCUMENT_ITEM = "document"


class DiagramListDock(QDockWidget):
    """
    Project -> diagram tree with a "New Diagram" button.

    The dock never calls the API; every user action is re-emitted as a signal
    carrying the document id (and title where needed).
    """

    refresh_requested = pyqtSignal()
    create_requested = pyqtSignal(str)          # project id, "" = ask
    view_requested = pyqtSignal(str)
    edit_requested = pyqtSignal(str)
    edit_in_browser_requested = pyqtSignal(str)
    insert_requested = pyqtSignal(str)
    clone_requested = pyqtSignal(str)
    delete_requested = pyqtSignal(str, str)     # document id, title

    def __init__(self, parent=None):
        super().__init__("Mermaid Chart", parent)
        self.setObjectName("DiagramListDock")
        w = QWidget()
        self.setWidget(w)
        layout = QVBoxLayout(w)

        bar = QHBoxLayout()
        self.new_btn = QPushButton("New Diagram")
        self.new_btn.clicked.connect(lambda: self.create_requested.emit(self._selected_project_id()))
        bar.addWidget(self.new_btn, 1)
        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self.refresh_requested.emit)
        bar.addWidget(self.refresh_btn)
        layout.addLayout(bar)

        # Indeterminate while loading
        self.progress = QProgressBar()
        self.progress.setRange(0, 0)
        self.progress.setTextVisible(False)
        self.progress.setMaximumHeight(4)
        self.progress.hide()
        layout.addWidget(self.progress)

        self.tree = QTreeWidget()
        self.tree.setHeaderHidden(True)
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        self.tree.itemDoubleClicked.connect(self._on_double_clicked)
        layout.addWidget(self.tree, 1)

        self.status = QLabel("")
        self.status.setWordWrap(True)
        layout.addWidget(self.status)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def set_loading(self, loading: bool) -> None:
        self.progress.setVisible(loading)
        self.refresh_btn.setEnabled(not loading)
        if loading:
            self.status.setText("Loading diagrams...")

    def set_listings(self, listings: List[ProjectListing]) -> None:
        expanded = {
            self.tree.topLevelItem(i).data(0, _ROLE)[1]
            for i in range(self.tree.topLevelItemCount())
            if self.tree.topLevelItem(i).isExpanded()
        }
        self.tree.clear()
        count = 0
        for listing in listings:
            project = listing.project
            p_item = QTreeWidgetItem([project.title or project.id])
            p_item.setData(0, _ROLE, (PROJECT_ITEM, project.id, project.title))
            for diagram in listing.documents:
                d_item = QTreeWidgetItem([document_label(diagram)])
                d_item.setData(0, _ROLE, (DOCUMENT_ITEM, diagram.document_id, diagram.title))
                d_item.setToolTip(0, f"{diagram.document_id}  {diagram.version_tag}")
                p_item.addChild(d_item)
                count += 1
            self.tree.addTopLevelItem(p_item)
            p_item.setExpanded(project.id in expanded or len(listings) == 1)
        self.status.setText(f"{count} diagram(s) in {len(listings)} project(s)")

    def set_error(self, message: str) -> None:
        self.set_loading(False)
        self.status.setText(message)

    def project_choices(self) -> List[Tuple[str, str]]:
        """(project id, title) for every listed project."""
        out = []
        for i in range(self.tree.topLevelItemCount()):
            _kind, pid, title = self.tree.topLevelItem(i).data(0, _ROLE)
            out.append((pid, title or pid))
        return out

    def selected_document(self) -> Optional[Tuple[str, str]]:
        """(document id, title) of the selected diagram, or None."""
        info = self._item_info(self.tree.currentItem())
        if info is None or info[0] != DOCUMENT_ITEM:
            return None
        return info[1], info[2] or info[1]

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def _item_info(self, item: Optional[QTreeWidgetItem]):
        if item is None:
            return None
        return item.data(0, _ROLE)

    def _selected_project_id(self) -> str:
        info = self._item_info(self.tree.currentItem())
        if info is None:
            return ""
        if info[0] == PROJECT_ITEM:
            return info[1]
        parent = self.tree.currentItem().parent()
        return parent.data(0, _ROLE)[1] if parent is not None else ""

    def _on_double_clicked(self, item: QTreeWidgetItem, _column: int):
        info = self._item_info(item)
        if info and info[0] == DOCUMENT_ITEM:
            self.edit_requested.emit(info[1])

    def _show_context_menu(self, pos):
        item = self.tree.itemAt(pos)
        info = self._item_info(item)
        if info is None:
            return
        kind, item_id, title = info
        menu = QMenu(self)

        if kind == PROJECT_ITEM:
            act = QAction("New Diagram in Project", menu)
            act.triggered.connect(lambda: self.create_requested.emit(item_id))
            menu.addAction(act)
        else:
            for label, signal in (
                ("View Diagram", self.view_requested),
                ("Edit Diagram", self.edit_requested),
                ("Edit in Browser", self.edit_in_browser_requested),
                ("Insert Reference", self.insert_requested),
                ("Clone Diagram", self.clone_requested),
            ):
                act = QAction(label, menu)
                act.triggered.connect(lambda _checked=False, s=signal: s.emit(item_id))
                menu.addAction(act)
            menu.addSeparator()
            delete_act = QAction("Delete Diagram", menu)
            delete_act.triggered.connect(lambda: self.delete_requested.emit(item_id, title or item_id))
            menu.addAction(delete_act)

        menu.exec(self.tree.viewport().mapToGlobal(pos))
