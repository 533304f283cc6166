"""
styles.py

Application stylesheets - dark and light themes, accented with the Mermaid
Chart pink.
"""

DARK_STYLE = """
/* === Base Colors === */
QMainWindow {
    background-color: #1e1e1e;
}

QWidget {
    background-color: #252526;
    color: #cccccc;
    font-family: "Segoe UI", "SF Pro Display", sans-serif;
    font-size: 13px;
}

/* === Menu Bar === */
QMenuBar {
    background-color: #333333;
    color: #cccccc;
    border-bottom: 1px solid #404040;
    padding: 2px;
}

QMenuBar::item:selected,
QMenu::item:selected {
    background-color: #7a2242;
}

QMenu {
    background-color: #2d2d30;
    border: 1px solid #404040;
    padding: 4px;
}

QMenu::item {
    padding: 6px 24px;
}

QMenu::separator {
    height: 1px;
    background-color: #404040;
    margin: 4px 8px;
}

/* === Dock Widgets === */
QDockWidget::title {
    background-color: #2d2d30;
    padding: 8px;
    border-bottom: 1px solid #404040;
    font-weight: bold;
}

/* === Tabs === */
QTabBar::tab {
    background-color: #2d2d30;
    color: #888888;
    border: 1px solid #404040;
    border-bottom: none;
    padding: 6px 14px;
    margin-right: 2px;
}

QTabBar::tab:selected {
    background-color: #1e1e1e;
    color: #ffffff;
    border-top: 2px solid #ff477b;
}

/* === Editors === */
QPlainTextEdit, QTextBrowser {
    background-color: #1e1e1e;
    color: #d4d4d4;
    border: none;
    selection-background-color: #264f78;
}

QLineEdit, QSpinBox, QDoubleSpinBox, QComboBox {
    background-color: #3c3c3c;
    color: #cccccc;
    border: 1px solid #505050;
    border-radius: 4px;
    padding: 4px 8px;
}

QLineEdit:focus, QSpinBox:focus, QDoubleSpinBox:focus, QComboBox:focus {
    border-color: #ff477b;
}

/* === Tree === */
QTreeWidget {
    background-color: #1e1e1e;
    border: none;
}

QTreeWidget::item:selected {
    background-color: #7a2242;
    color: #ffffff;
}

/* === Buttons === */
QPushButton {
    background-color: #ff477b;
    color: #ffffff;
    border: none;
    border-radius: 4px;
    padding: 6px 14px;
}

QPushButton:hover {
    background-color: #ff6b95;
}

QPushButton:disabled {
    background-color: #3c3c3c;
    color: #777777;
}

/* === Progress === */
QProgressBar {
    background-color: #2d2d30;
    border: none;
}

QProgressBar::chunk {
    background-color: #ff477b;
}

/* === Status Bar === */
QStatusBar {
    background-color: #7a2242;
    color: #ffffff;
}
"""

LIGHT_STYLE = """
/* === Base Colors === */
QMainWindow {
    background-color: #f5f5f5;
}

QWidget {
    background-color: #ffffff;
    color: #363636;
    font-family: "Segoe UI", "SF Pro Display", sans-serif;
    font-size: 13px;
}

/* === Menu Bar === */
QMenuBar {
    background-color: #fafafa;
    border-bottom: 1px solid #dbdbdb;
    padding: 2px;
}

QMenuBar::item:selected,
QMenu::item:selected {
    background-color: #ffe0ea;
}

QMenu {
    background-color: #ffffff;
    border: 1px solid #dbdbdb;
    padding: 4px;
}

QMenu::item {
    padding: 6px 24px;
}

/* === Dock Widgets === */
QDockWidget::title {
    background-color: #fafafa;
    padding: 8px;
    border-bottom: 1px solid #dbdbdb;
    font-weight: bold;
}

/* === Tabs === */
QTabBar::tab {
    background-color: #f0f0f0;
    color: #7a7a7a;
    border: 1px solid #dbdbdb;
    border-bottom: none;
    padding: 6px 14px;
    margin-right: 2px;
}

QTabBar::tab:selected {
    background-color: #ffffff;
    color: #363636;
    border-top: 2px solid #e0245e;
}

/* === Editors === */
QLineEdit, QSpinBox, QDoubleSpinBox, QComboBox {
    border: 1px solid #dbdbdb;
    border-radius: 4px;
    padding: 4px 8px;
}

QLineEdit:focus, QSpinBox:focus, QDoubleSpinBox:focus, QComboBox:focus {
    border-color: #e0245e;
}

/* === Tree === */
QTreeWidget::item:selected {
    background-color: #ffe0ea;
    color: #363636;
}

/* === Buttons === */
QPushButton {
    background-color: #e0245e;
    color: #ffffff;
    border: none;
    border-radius: 4px;
    padding: 6px 14px;
}

QPushButton:hover {
    background-color: #f0457a;
}

QPushButton:disabled {
    background-color: #e8e8e8;
    color: #a0a0a0;
}

/* === Progress === */
QProgressBar {
    background-color: #f0f0f0;
    border: none;
}

QProgressBar::chunk {
    background-color: #e0245e;
}

/* === Status Bar === */
QStatusBar {
    background-color: #fafafa;
    border-top: 1px solid #dbdbdb;
}
"""

# Style registry for easy access
STYLES = {
    "dark": DARK_STYLE,
    "light": LIGHT_STYLE,
}

DEFAULT_STYLE = "dark"

# Line number area colors for the code editor
# highlight_bar also marks lines carrying diagram references
LINE_NUMBER_COLORS = {
    "dark": {
        "background": "#1a1a1a",      # Slightly darker than editor (#1e1e1e)
        "text": "#606060",            # Dimmed text
        "text_active": "#ffffff",     # Active line text
        "highlight_bar": "#ff477b",   # Reference marker
        "current_line_bg": "#2d2d2d", # Current line background
    },
    "light": {
        "background": "#f0f0f0",      # Slightly darker than editor (#ffffff)
        "text": "#a0a0a0",            # Dimmed text
        "text_active": "#363636",     # Active line text
        "highlight_bar": "#e0245e",   # Reference marker
        "current_line_bg": "#e8e8e8", # Current line background
    },
}

# Background behind rendered diagrams in panels
PREVIEW_BACKGROUNDS = {
    "dark": "#1e1e1e",
    "light": "#ffffff",
}
