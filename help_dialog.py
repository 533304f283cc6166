"""
help_dialog.py

Help system dialogs for ChartLens.

Provides a tabbed help browser (Quick Start, Diagram References, Keyboard
Shortcuts) and an About dialog.
"""

from __future__ import annotations

from PyQt6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QMessageBox,
    QTabWidget,
    QTextBrowser,
    QVBoxLayout,
)


class HelpDialog(QDialog):
    """Tabbed help dialog for ChartLens.

    Args:
        parent: Parent widget.
        initial_tab: Index of the tab to display on open
            (0=Quick Start, 1=Diagram References, 2=Keyboard Shortcuts).
    """

    def __init__(self, parent=None, initial_tab: int = 0):
        super().__init__(parent)
        self.setWindowTitle("ChartLens Help")
        self.setMinimumSize(650, 550)
        self.resize(720, 600)

        layout = QVBoxLayout(self)

        self.tabs = QTabWidget()
        self.tabs.addTab(self._browser(_QUICK_START_HTML), "Quick Start")
        self.tabs.addTab(self._browser(_REFERENCES_HTML), "Diagram References")
        self.tabs.addTab(self._browser(_SHORTCUTS_HTML), "Keyboard Shortcuts")
        self.tabs.setCurrentIndex(initial_tab)
        layout.addWidget(self.tabs)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    @staticmethod
    def _browser(html: str) -> QTextBrowser:
        browser = QTextBrowser()
        browser.setOpenExternalLinks(True)
        browser.setHtml(html)
        return browser


def show_about_dialog(parent=None):
    """Show the About ChartLens dialog.

    Args:
        parent: Parent widget for the message box.
    """
    QMessageBox.about(
        parent,
        "About ChartLens",
        "<h2>ChartLens</h2>"
        "<p><b>v0.1</b> &ndash; Mermaid Chart companion editor</p>"
        "<p>Link source files to diagrams stored on "
        "<a href='https://www.mermaidchart.com'>Mermaid Chart</a>, preview them "
        "inline and edit them without leaving the editor.</p>"
        "<p>Built with PyQt6.</p>",
    )


# ── Static HTML content ──────────────────────────────

_QUICK_START_HTML = """\
<h2>Quick Start</h2>

<h3>1. Configure the service</h3>
<p>Open <b>File &rarr; Settings&hellip; &rarr; Mermaid Chart</b> and enter the
<b>Base URL</b> (normally <code>https://www.mermaidchart.com</code>) and the
OAuth <b>Client ID</b>.</p>

<h3>2. Sign in</h3>
<p>Use <b>Diagrams &rarr; Sign In</b>. Your browser opens the Mermaid Chart
login page; once you approve access, the diagram list on the left fills with
your projects.</p>

<h3>3. Browse diagrams</h3>
<p>Right-click a diagram in the list to <b>view</b>, <b>edit</b>, open it
<b>in the browser</b>, <b>clone</b> or <b>delete</b> it. Double-click opens
the editor panel.</p>

<h3>4. Link diagrams to code</h3>
<p>Place the cursor in a source file and choose <b>Insert Reference</b>.
A comment holding the diagram id is added; the line is highlighted and a
&#9670; marker appears in the gutter. Click the marker to view the diagram.</p>

<h3>5. Edit and update</h3>
<p>The editor panel shows the Mermaid code next to the rendered diagram.
Change the code or title and press <b>Update diagram</b> to save it back to
Mermaid Chart.</p>
"""

_REFERENCES_HTML = """\
<h2>Diagram References</h2>

<p>A reference is the token <code>[MermaidChart: &lt;diagram id&gt;]</code>
written inside a comment. The id is the document UUID shown in the diagram
list tooltip.</p>

<table cellpadding="6" cellspacing="0" border="1"
       style="border-collapse:collapse; width:100%;">
  <tr style="background:#f0f0f0;">
    <th>File type</th><th>Inserted line</th>
  </tr>
  <tr><td>Markdown, HTML</td>
      <td><code>&lt;!-- [MermaidChart: &hellip;] --&gt;</code></td></tr>
  <tr><td>Python, YAML, TOML, shell</td>
      <td><code># [MermaidChart: &hellip;]</code></td></tr>
  <tr><td>Everything else</td>
      <td><code>// [MermaidChart: &hellip;]</code></td></tr>
</table>

<h3>What is recognised</h3>
<ul>
  <li>Only tokens inside a comment are highlighted; a comment starts at the
      first <code>//</code>, <code>#</code>, <code>/*</code> or
      <code>&lt;!--</code> on a line and runs to the end of that line.</li>
  <li>Several tokens on one comment line are all recognised.</li>
  <li>Malformed ids are ignored.</li>
</ul>

<p>Highlights follow your typing after a short delay, which can be changed
under <b>Settings &rarr; Highlights</b>.</p>
"""

_SHORTCUTS_HTML = """\
<h2>Keyboard Shortcuts</h2>

<table cellpadding="6" cellspacing="0" border="1"
       style="border-collapse:collapse; width:100%;">
  <tr style="background:#f0f0f0;">
    <th>Category</th><th>Shortcut</th><th>Action</th>
  </tr>
  <tr><td rowspan="4"><b>File</b></td>
      <td><code>Ctrl+N</code></td><td>New file</td></tr>
  <tr><td><code>Ctrl+O</code></td><td>Open file</td></tr>
  <tr><td><code>Ctrl+S</code></td><td>Save file</td></tr>
  <tr><td><code>Ctrl+W</code></td><td>Close tab</td></tr>

  <tr><td rowspan="3"><b>Diagrams</b></td>
      <td><code>F5</code></td><td>Refresh the diagram list</td></tr>
  <tr><td><code>Ctrl+Shift+N</code></td><td>New diagram</td></tr>
  <tr><td><code>Ctrl+Shift+R</code></td><td>Insert reference to the selected diagram</td></tr>

  <tr><td><b>Help</b></td>
      <td><code>F1</code></td><td>Open this Help dialog</td></tr>
</table>
"""
