"""
main.py

ChartLens - Mermaid Chart companion editor

PyQt6 application for working with diagrams stored on Mermaid Chart:
- Source editor highlighting ``[MermaidChart: <uuid>]`` references in comments
- Diagram list with create, clone and delete
- Edit panels with a live preview, synchronized with the service

Usage:
    python main.py [FILE ...]

Dependencies:
    pip install PyQt6 platformdirs tomli-w requests
"""

from __future__ import annotations

import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Callable, List, Optional

from PyQt6.QtCore import Qt, QTimer, QUrl, pyqtSignal
from PyQt6.QtGui import QAction, QDesktopServices, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QTabWidget,
)

from api.errors import MermaidChartError
from api.worker import JobQueue
from context import AppContext, build_context
from debug_trace import close_log, enable_trace, trace, trace_exception
from editor.code_editor import TokenCodeEditor, invalidate_editor_settings
from events import (
    ACTIVE_DOCUMENT_CHANGED,
    CONFIGURATION_CHANGED,
    DOCUMENT_CHANGED,
    SESSIONS_CHANGED,
    EventSource,
)
from help_dialog import HelpDialog, show_about_dialog
from models import Diagram
from panels.confirm import DELETE_FAILED_MESSAGE, DELETED_MESSAGE, confirm_delete
from panels.controller import PanelController
from panels.diagram_panel import DiagramPanel
from panels.registry import PanelRegistry
from references.overlay import VIEW_COMMAND, InlineAction
from references.scanner import comment_line_for
from settings import SettingsManager, get_settings
from settings_dialog import SettingsDialog
from styles import LINE_NUMBER_COLORS, PREVIEW_BACKGROUNDS, STYLES
from views.diagram_list import DiagramListDock
from views.listing import fetch_listings

UNTITLED = "Untitled"
FILE_FILTER = "All Files (*);;Markdown (*.md);;Python (*.py);;Text (*.txt)"


def describe_error(error: BaseException) -> str:
    """User-facing text for an exception delivered by the job queue."""
    if isinstance(error, MermaidChartError):
        return str(error)
    return f"{type(error).__name__}: {error}"


def system_is_dark() -> bool:
    """True when the platform color scheme is dark (or unknown)."""
    app = QApplication.instance()
    if app is None:
        return True
    return app.styleHints().colorScheme() != Qt.ColorScheme.Light


class WindowNotifier:
    """Info messages go to the status bar; errors also raise a message box."""

    def __init__(self, window: QMainWindow):
        self.window = window

    def info(self, message: str) -> None:
        trace(message, "UI")
        self.window.statusBar().showMessage(message, 5000)

    def error(self, message: str) -> None:
        trace(f"error: {message}", "UI")
        self.window.statusBar().showMessage(message, 8000)
        QMessageBox.warning(self.window, "Mermaid Chart", message)


class MainWindow(QMainWindow):
    """Main application window for ChartLens.

    Args:
        settings_manager: The SettingsManager instance for application settings.
    """

    # Re-emitted on the GUI thread; providers may report session changes from a job
    _sessions_changed = pyqtSignal()

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("ChartLens")

        self.notifier = WindowNotifier(self)
        self.events = EventSource()
        self.queue = JobQueue(self)
        self.ctx: AppContext = build_context(settings_manager, self.events, self.queue)

        # Editors
        self.tabs = QTabWidget()
        self.tabs.setTabsClosable(True)
        self.tabs.setDocumentMode(True)
        self.tabs.tabCloseRequested.connect(self.close_tab)
        self.tabs.currentChanged.connect(self._on_current_tab_changed)
        self.setCentralWidget(self.tabs)

        # Diagram list (left side)
        self.dock = DiagramListDock(self)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, self.dock)
        self.dock.refresh_requested.connect(self.refresh_diagrams)
        self.dock.create_requested.connect(self.create_diagram)
        self.dock.view_requested.connect(self.view_diagram)
        self.dock.edit_requested.connect(self.edit_diagram)
        self.dock.edit_in_browser_requested.connect(self.edit_in_browser)
        self.dock.insert_requested.connect(self.insert_reference)
        self.dock.clone_requested.connect(self.clone_diagram)
        self.dock.delete_requested.connect(self.delete_diagram)

        # Debounced rescanning of the active editor
        self._scan_timer = QTimer(self)
        self._scan_timer.setSingleShot(True)
        self._scan_timer.timeout.connect(self._refresh_overlay)

        self._build_menus()

        self._busy_label = QLabel("Working...")
        self._busy_label.hide()
        self._session_label = QLabel("Not signed in")
        self.statusBar().addPermanentWidget(self._busy_label)
        self.statusBar().addPermanentWidget(self._session_label)
        self.queue.busy_changed.connect(self._busy_label.setVisible)

        self._sessions_changed.connect(self._update_session_label)
        self.ctx.unsubscribers.extend([
            self.events.subscribe(SESSIONS_CHANGED, lambda *_: self._sessions_changed.emit()),
            self.events.subscribe(DOCUMENT_CHANGED, self._on_document_changed),
            self.events.subscribe(ACTIVE_DOCUMENT_CHANGED, self._on_active_document_changed),
            self.events.subscribe(CONFIGURATION_CHANGED, self._on_configuration_changed),
        ])

        self.apply_theme()
        self.statusBar().showMessage("Open a file, then sign in to Mermaid Chart from the Diagrams menu.")

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        new_act = QAction("New", self)
        new_act.setShortcut(QKeySequence.StandardKey.New)
        new_act.triggered.connect(lambda: self.new_tab())
        file_menu.addAction(new_act)

        open_act = QAction("Open...", self)
        open_act.setShortcut(QKeySequence.StandardKey.Open)
        open_act.triggered.connect(self.open_file_dialog)
        file_menu.addAction(open_act)

        save_act = QAction("Save", self)
        save_act.setShortcut(QKeySequence.StandardKey.Save)
        save_act.triggered.connect(self.save_current)
        file_menu.addAction(save_act)

        save_as_act = QAction("Save As...", self)
        save_as_act.setShortcut(QKeySequence.StandardKey.SaveAs)
        save_as_act.triggered.connect(lambda: self.save_current(save_as=True))
        file_menu.addAction(save_as_act)

        close_act = QAction("Close Tab", self)
        close_act.setShortcut(QKeySequence.StandardKey.Close)
        close_act.triggered.connect(lambda: self.close_tab(self.tabs.currentIndex()))
        file_menu.addAction(close_act)

        file_menu.addSeparator()

        settings_act = QAction("Settings...", self)
        settings_act.triggered.connect(self.show_settings_dialog)
        file_menu.addAction(settings_act)

        file_menu.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        # Diagrams menu
        diagrams_menu = menubar.addMenu("&Diagrams")

        sign_in_act = QAction("Sign In", self)
        sign_in_act.triggered.connect(self.sign_in)
        diagrams_menu.addAction(sign_in_act)

        sign_out_act = QAction("Sign Out", self)
        sign_out_act.triggered.connect(self.sign_out)
        diagrams_menu.addAction(sign_out_act)

        diagrams_menu.addSeparator()

        refresh_act = QAction("Refresh List", self)
        refresh_act.setShortcut(QKeySequence(Qt.Key.Key_F5))
        refresh_act.triggered.connect(self.refresh_diagrams)
        diagrams_menu.addAction(refresh_act)

        create_act = QAction("New Diagram...", self)
        create_act.setShortcut(QKeySequence("Ctrl+Shift+N"))
        create_act.triggered.connect(lambda: self.create_diagram(""))
        diagrams_menu.addAction(create_act)

        insert_act = QAction("Insert Reference", self)
        insert_act.setShortcut(QKeySequence("Ctrl+Shift+R"))
        insert_act.triggered.connect(self._insert_selected_reference)
        diagrams_menu.addAction(insert_act)

        diagrams_menu.addSeparator()
        diagrams_menu.addAction(self.dock.toggleViewAction())

        # Help menu
        help_menu = menubar.addMenu("&Help")

        help_contents_act = QAction("Help Contents", self)
        help_contents_act.setShortcut(QKeySequence(Qt.Key.Key_F1))
        help_contents_act.triggered.connect(lambda: self._show_help_dialog())
        help_menu.addAction(help_contents_act)

        shortcuts_act = QAction("Keyboard Shortcuts", self)
        shortcuts_act.triggered.connect(lambda: self._show_help_dialog(tab=2))
        help_menu.addAction(shortcuts_act)

        help_menu.addSeparator()

        about_act = QAction("About ChartLens", self)
        about_act.triggered.connect(lambda: show_about_dialog(self))
        help_menu.addAction(about_act)

    def _show_help_dialog(self, tab: int = 0):
        dialog = HelpDialog(self, initial_tab=tab)
        dialog.exec()

    def show_settings_dialog(self):
        dialog = SettingsDialog(self.settings_manager, self)
        dialog.settings_changed.connect(lambda keys: self.events.emit(CONFIGURATION_CHANGED, keys))
        dialog.exec()

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------

    def render_theme(self) -> str:
        return self.ctx.render_theme(system_is_dark())

    def apply_theme(self):
        """Apply the configured (or system) theme to the app and every editor."""
        theme = self.render_theme()
        app = QApplication.instance()
        if app is not None:
            app.setStyleSheet(STYLES[theme])
        for editor in self.editors():
            editor.set_line_number_colors(LINE_NUMBER_COLORS[theme])
        trace(f"theme: {theme}", "UI")

    # ------------------------------------------------------------------
    # Editors
    # ------------------------------------------------------------------

    def editors(self) -> List[TokenCodeEditor]:
        return [self.tabs.widget(i) for i in range(self.tabs.count())]

    def current_editor(self) -> Optional[TokenCodeEditor]:
        return self.tabs.currentWidget()

    def new_tab(self, path: Optional[Path] = None, text: str = "") -> TokenCodeEditor:
        editor = TokenCodeEditor(path=path)
        editor.set_line_number_colors(LINE_NUMBER_COLORS[self.render_theme()])
        editor.setPlainText(text)
        editor.document().setModified(False)
        editor.textChanged.connect(lambda e=editor: self.events.emit(DOCUMENT_CHANGED, e))
        editor.document().modificationChanged.connect(lambda _m, e=editor: self._update_tab_title(e))
        editor.action_triggered.connect(self._on_inline_action)

        index = self.tabs.addTab(editor, "")
        self._update_tab_title(editor)
        self.tabs.setCurrentIndex(index)
        self.ctx.overlay.refresh(editor, text)
        return editor

    def _update_tab_title(self, editor: TokenCodeEditor):
        index = self.tabs.indexOf(editor)
        if index < 0:
            return
        name = editor.path.name if editor.path else UNTITLED
        if editor.document().isModified():
            name += " *"
        self.tabs.setTabText(index, name)
        self.tabs.setTabToolTip(index, str(editor.path) if editor.path else UNTITLED)

    def open_file_dialog(self):
        paths, _ = QFileDialog.getOpenFileNames(self, "Open File", "", FILE_FILTER)
        for path in paths:
            self.open_file(Path(path))

    def open_file(self, path: Path):
        for i, editor in enumerate(self.editors()):
            if editor.path == path:
                self.tabs.setCurrentIndex(i)
                return
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            QMessageBox.critical(self, "Open failed", f"{path}\n\n{e}")
            return
        self.new_tab(path, text)
        self.statusBar().showMessage(f"Opened {path}", 3000)

    def save_current(self, save_as: bool = False) -> bool:
        editor = self.current_editor()
        if editor is None:
            return False
        return self._save_editor(editor, save_as)

    def _save_editor(self, editor: TokenCodeEditor, save_as: bool = False) -> bool:
        path = editor.path
        if path is None or save_as:
            chosen, _ = QFileDialog.getSaveFileName(self, "Save File", str(path or ""), FILE_FILTER)
            if not chosen:
                return False
            path = Path(chosen)
        try:
            path.write_text(editor.toPlainText(), encoding="utf-8")
        except OSError as e:
            QMessageBox.critical(self, "Save failed", str(e))
            return False
        editor.set_path(path)
        editor.document().setModified(False)
        self._update_tab_title(editor)
        self.statusBar().showMessage(f"Saved {path}", 3000)
        return True

    def _confirm_discard(self, editor: TokenCodeEditor) -> bool:
        """Ask about unsaved changes. Returns False if the user cancelled."""
        if not editor.document().isModified():
            return True
        name = editor.path.name if editor.path else UNTITLED
        answer = QMessageBox.question(
            self,
            "Unsaved changes",
            f"Save changes to {name}?",
            QMessageBox.StandardButton.Save
            | QMessageBox.StandardButton.Discard
            | QMessageBox.StandardButton.Cancel,
        )
        if answer == QMessageBox.StandardButton.Save:
            return self._save_editor(editor)
        return answer == QMessageBox.StandardButton.Discard

    def close_tab(self, index: int):
        editor = self.tabs.widget(index)
        if editor is None or not self._confirm_discard(editor):
            return
        self.tabs.removeTab(index)
        editor.deleteLater()

    # ------------------------------------------------------------------
    # Reference overlay
    # ------------------------------------------------------------------

    def _on_current_tab_changed(self, _index: int):
        self.events.emit(ACTIVE_DOCUMENT_CHANGED, self.current_editor())

    def _on_active_document_changed(self, editor):
        self._scan_timer.stop()
        if editor is not None:
            self.ctx.overlay.refresh(editor, editor.toPlainText())

    def _on_document_changed(self, editor):
        if editor is not self.current_editor():
            return
        delay = self.settings_manager.settings.overlay.debounce_ms
        if delay <= 0:
            self._refresh_overlay()
        else:
            self._scan_timer.start(delay)

    def _refresh_overlay(self):
        editor = self.current_editor()
        if editor is not None:
            self.ctx.overlay.refresh(editor, editor.toPlainText())

    def _on_inline_action(self, action: InlineAction):
        if action.command == VIEW_COMMAND:
            self.view_diagram(action.reference.id)
        else:
            self.edit_diagram(action.reference.id)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def start(self):
        """Resume a stored session (never prompts), then load the list."""
        self.settings_manager.get_base_url(report=self._status_error)

        provider = self.ctx.provider
        session = self.ctx.session

        def _resume() -> bool:
            if provider.get_session(silent=True) is None:
                return False
            session.initialize()
            return True

        def _resumed(ok: bool):
            self._update_session_label()
            if ok:
                self.refresh_diagrams()

        self._run(_resume, _resumed)

    def sign_in(self):
        if not self.settings_manager.get_base_url(report=self._status_error):
            return
        if not self.settings_manager.get_client_id(report=self._status_error):
            return
        self.statusBar().showMessage("Waiting for sign-in in the browser...")

        def _signed_in(_result):
            self._update_session_label()
            self.notifier.info("Signed in to Mermaid Chart")
            self.refresh_diagrams()

        self._run(self.ctx.session.initialize, _signed_in)

    def sign_out(self):
        provider = self.ctx.provider
        if not hasattr(provider, "remove_session"):
            return

        def _signed_out(_result):
            self.dock.set_listings([])
            self._update_session_label()
            self.notifier.info("Signed out of Mermaid Chart")

        self._run(provider.remove_session, _signed_out)

    def _update_session_label(self):
        self._session_label.setText("Signed in" if self.ctx.store.token else "Not signed in")

    def _status_error(self, message: str):
        self.statusBar().showMessage(message, 8000)

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    def _run(
        self,
        fn: Callable[[], Any],
        on_finished: Optional[Callable[[Any], None]] = None,
        failure_message: Optional[str] = None,
    ):
        """Queue *fn*; failures become an error notification."""
        def _failed(error: BaseException):
            self._update_session_label()
            self.notifier.error(failure_message or describe_error(error))

        self.ctx.runner(fn, on_finished, _failed)

    def _load_rendered(self, document_id: str, theme: str) -> Diagram:
        """Fetch a document plus its rendered output (runs inside a job)."""
        client = self.ctx.client
        diagram = client.get_document(document_id)
        return diagram.with_rendered(theme, client.get_rendered_output(diagram, theme))

    # ------------------------------------------------------------------
    # Diagram list
    # ------------------------------------------------------------------

    def refresh_diagrams(self):
        self.dock.set_loading(True)
        client = self.ctx.client

        def _loaded(listings):
            self.dock.set_loading(False)
            self.dock.set_listings(listings)
            self._update_session_label()

        def _failed(error: BaseException):
            self.dock.set_error(f"Could not load diagrams: {describe_error(error)}")
            self._update_session_label()

        self.ctx.runner(lambda: fetch_listings(client), _loaded, _failed)

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------

    def _open_panel(self, registry: PanelRegistry, diagram: Diagram, theme: str, read_only: bool = False):
        document_id = diagram.document_id

        def factory() -> PanelController:
            controller = PanelController(
                diagram,
                self.ctx.client,
                self.ctx.runner,
                self.notifier,
                on_updated=lambda _fresh: self.refresh_diagrams(),
                theme=theme,
            )
            title = diagram.title or f"Chart - {document_id}"
            panel = DiagramPanel(
                f"{title} (view)" if read_only else title,
                controller.handle_message,
                on_closed=lambda: registry.dispose(document_id),
                read_only=read_only,
            )
            panel.preview.set_background(PREVIEW_BACKGROUNDS[theme])
            controller.attach(panel)
            return controller

        registry.open_or_reveal(document_id, factory)

    def view_diagram(self, document_id: str):
        """Read-only viewer for the rendered diagram."""
        existing = self.ctx.viewers.get(document_id)
        if existing is not None:
            existing.reveal()
            return
        theme = self.render_theme()
        self._run(
            lambda: self._load_rendered(document_id, theme),
            lambda diagram: self._open_panel(self.ctx.viewers, diagram, theme, read_only=True),
        )

    def edit_diagram(self, document_id: str):
        existing = self.ctx.panels.get(document_id)
        if existing is not None:
            existing.reveal()
            return
        theme = self.render_theme()
        self._run(
            lambda: self._load_rendered(document_id, theme),
            lambda diagram: self._open_panel(self.ctx.panels, diagram, theme),
        )

    def edit_in_browser(self, document_id: str):
        client = self.ctx.client

        def _open(url: str):
            trace(f"opening {url}", "UI")
            QDesktopServices.openUrl(QUrl(url))

        self._run(lambda: client.get_edit_url(document_id), _open)

    # ------------------------------------------------------------------
    # Create / clone / delete
    # ------------------------------------------------------------------

    def _choose_project(self) -> str:
        choices = self.dock.project_choices()
        if not choices:
            self.notifier.error("No projects available. Refresh the diagram list first.")
            return ""
        if len(choices) == 1:
            return choices[0][0]
        labels = [title for _pid, title in choices]
        label, ok = QInputDialog.getItem(self, "New Diagram", "Project:", labels, 0, False)
        if not ok:
            return ""
        return choices[labels.index(label)][0]

    def create_diagram(self, project_id: str = ""):
        project_id = project_id or self._choose_project()
        if not project_id:
            return
        theme = self.render_theme()
        client = self.ctx.client

        def _create() -> Diagram:
            created = client.create_document(project_id)
            return self._load_rendered(created.document_id, theme)

        def _created(diagram: Diagram):
            self._open_panel(self.ctx.panels, diagram, theme)
            self.refresh_diagrams()

        self._run(_create, _created)

    def clone_diagram(self, document_id: str):
        theme = self.render_theme()
        client = self.ctx.client

        def _clone() -> Diagram:
            source = client.get_document(document_id)
            copy = client.create_document(source.project_id)
            copy = copy.with_edits(source.code, f"{source.title} (copy)")
            client.update_document(copy)
            return self._load_rendered(copy.document_id, theme)

        def _cloned(diagram: Diagram):
            self._open_panel(self.ctx.panels, diagram, theme)
            self.refresh_diagrams()
            self.notifier.info(f"Cloned as {diagram.title}")

        self._run(_clone, _cloned)

    def delete_diagram(self, document_id: str, title: str):
        if not confirm_delete(self, title):
            return
        client = self.ctx.client

        def _deleted(_diagram):
            self.ctx.panels.dispose(document_id)
            self.ctx.viewers.dispose(document_id)
            self.notifier.info(DELETED_MESSAGE)
            self.refresh_diagrams()

        self._run(lambda: client.delete_document(document_id), _deleted, failure_message=DELETE_FAILED_MESSAGE)

    # ------------------------------------------------------------------
    # Insert reference
    # ------------------------------------------------------------------

    def insert_reference(self, document_id: str):
        editor = self.current_editor()
        if editor is None:
            editor = self.new_tab()
        editor.insert_line_at_cursor(comment_line_for(editor.language_id, document_id))
        editor.setFocus()

    def _insert_selected_reference(self):
        selected = self.dock.selected_document()
        if selected is None:
            self.statusBar().showMessage("Select a diagram in the list first.", 5000)
            return
        self.insert_reference(selected[0])

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _on_configuration_changed(self, keys: List[str]):
        settings = self.settings_manager.settings
        if "theme" in keys:
            self.apply_theme()
        if "debug_trace" in keys:
            enable_trace(settings.debug_trace)
        if "mermaid_chart.timeout" in keys:
            self.ctx.client.timeout = settings.mermaid_chart.timeout
        if any(k.startswith(("editor.", "overlay.")) for k in keys):
            invalidate_editor_settings()
            for editor in self.editors():
                editor.reload_settings()
            self._refresh_overlay()
        self.statusBar().showMessage("Settings saved.", 3000)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def closeEvent(self, event):
        for editor in self.editors():
            if not self._confirm_discard(editor):
                event.ignore()
                return
        cancel_login = getattr(self.ctx.provider, "cancel_login", None)
        if cancel_login is not None:
            cancel_login()
        self._scan_timer.stop()
        self.ctx.shutdown()
        self.queue.shutdown()
        event.accept()


def main():
    """Application entry point."""
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)
    app.setApplicationName("ChartLens")

    # Load settings (use singleton to ensure single instance)
    settings_manager = get_settings()
    settings_manager.ensure_file_complete()
    enable_trace(settings_manager.settings.debug_trace)

    logging.basicConfig(
        level=logging.DEBUG if settings_manager.settings.debug_trace else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1400, 900)
    for arg in sys.argv[1:]:
        w.open_file(Path(arg))
    if not w.editors():
        w.new_tab()
    w.show()
    w.start()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
