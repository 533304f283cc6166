"""
utils.py

Utility functions for ChartLens: image data URIs, PKCE helpers and SVG
pre-processing for Qt.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
import secrets
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

# Register namespaces so ET.tostring() doesn't mangle them with ns0/ns1 prefixes
ET.register_namespace("", "http://www.w3.org/2000/svg")
ET.register_namespace("xlink", "http://www.w3.org/1999/xlink")

_SVG_NS = "http://www.w3.org/2000/svg"
_XHTML_NS = "http://www.w3.org/1999/xhtml"

SVG_DATA_URL_PREFIX = "data:image/svg+xml;base64,"


def svg_data_url(svg_xml: str) -> str:
    """
    Wrap SVG markup in a self-contained data URI.

    Args:
        svg_xml: SVG document text (may be empty)

    Returns:
        ``data:image/svg+xml;base64,...`` string
    """
    encoded = base64.b64encode((svg_xml or "").encode("utf-8")).decode("ascii")
    return SVG_DATA_URL_PREFIX + encoded


def decode_data_url(url: str) -> Optional[bytes]:
    """
    Decode a base64 data URI back into its payload bytes.

    Args:
        url: A ``data:<mime>;base64,<payload>`` string

    Returns:
        The decoded payload, or None if *url* is not a base64 data URI
    """
    if not url or not url.startswith("data:"):
        return None
    header, sep, payload = url.partition(",")
    if not sep or not header.endswith(";base64"):
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def encoded_sha256_hash(value: str) -> str:
    """
    PKCE code challenge used by the Mermaid Chart OAuth server.

    The hex SHA-256 digest is itself base64url-encoded with padding removed.
    """
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    encoded = base64.b64encode(digest.encode("ascii")).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_").rstrip("=")


def make_code_verifier() -> str:
    """Generate a fresh PKCE code verifier (43+ url-safe characters)."""
    return secrets.token_urlsafe(48)


# ─────────────────────────────────────────────────────────
# SVG pre-processing for Qt
# ─────────────────────────────────────────────────────────

# Presentation attributes that Qt's SVG renderer honours
_SVG_ATTRS = {
    "stroke", "fill", "stroke-width", "stroke-dasharray",
    "stroke-linecap", "stroke-linejoin", "stroke-opacity",
    "fill-opacity", "opacity", "font-size", "font-family",
    "font-weight", "font-style", "text-anchor",
    "dominant-baseline", "visibility",
}


def _inline_css_classes(root: ET.Element) -> None:
    """Copy ``.class { ... }`` rules from ``<style>`` onto matching elements.

    Qt's ``QSvgRenderer`` ignores ``<style>``; the style elements are removed.
    """
    parent_map = {c: p for p in root.iter() for c in p}
    css_parts: List[str] = []
    for style_el in list(root.iter(f"{{{_SVG_NS}}}style")) + list(root.iter(f"{{{_XHTML_NS}}}style")):
        if style_el.text:
            css_parts.append(style_el.text)
        parent = parent_map.get(style_el)
        if parent is not None:
            parent.remove(style_el)

    class_map: Dict[str, Dict[str, str]] = {}
    for m in re.finditer(r"\.([a-zA-Z0-9_-]+)\s*\{([^}]+)\}", "\n".join(css_parts)):
        props = {
            p.group(1).strip(): p.group(2).strip()
            for p in re.finditer(r"([\w-]+)\s*:\s*([^;]+)", m.group(2))
            if p.group(1).strip() in _SVG_ATTRS
        }
        if props:
            class_map.setdefault(m.group(1), {}).update(props)

    if not class_map:
        return
    for el in root.iter():
        for token in el.get("class", "").split():
            for prop, val in class_map.get(token, {}).items():
                if el.get(prop) is None:
                    el.set(prop, val)


def _foreign_object_text(fo: ET.Element) -> str:
    texts: List[str] = []
    for el in fo.iter():
        tag = el.tag.split("}")[-1]
        is_icon = tag == "i" and "fa" in el.get("class", "")
        if not is_icon and el.text and el.text.strip():
            texts.append(el.text.strip())
        if el.tail and el.tail.strip():
            texts.append(el.tail.strip())
    return " ".join(texts)


def _length(value: Optional[str]) -> float:
    if not value or value.endswith("%"):
        return 0.0
    try:
        return float(value.rstrip("px"))
    except ValueError:
        return 0.0


def prepare_svg_for_qt(svg_xml: str) -> bytes:
    """
    Make Mermaid SVG output displayable by ``QSvgRenderer``.

    Mermaid writes every label as a ``<foreignObject>`` holding XHTML,
    which Qt does not draw. Each one is replaced by a centred ``<text>``.
    CSS class rules are inlined and a missing viewBox is derived from the
    root style.

    Args:
        svg_xml: SVG document text

    Returns:
        UTF-8 encoded SVG; the input unchanged if it is not well-formed XML
    """
    raw = (svg_xml or "").encode("utf-8")
    try:
        root = ET.fromstring(raw)
    except ET.ParseError:
        return raw

    if not root.get("viewBox"):
        style_attr = root.get("style", "")
        m_w = re.search(r"(?:max-)?width:\s*([\d.]+)px", style_attr)
        m_h = re.search(r"height:\s*([\d.]+)px", style_attr)
        if m_w and m_h:
            root.set("viewBox", f"0 0 {m_w.group(1)} {m_h.group(1)}")

    _inline_css_classes(root)

    parent_map = {c: p for p in root.iter() for c in p}
    for fo in list(root.iter(f"{{{_SVG_NS}}}foreignObject")):
        parent = parent_map.get(fo)
        if parent is None:
            continue
        text = _foreign_object_text(fo)
        width, height = _length(fo.get("width")), _length(fo.get("height"))
        idx = list(parent).index(fo)
        parent.remove(fo)
        if not text or width < 1 or height < 1:
            continue

        edge_label = "edgeLabel" in parent.get("class", "") or parent.get("data-id", "").startswith("L_")
        text_el = ET.Element(f"{{{_SVG_NS}}}text")
        text_el.set("x", str(round(width / 2, 2)))
        text_el.set("y", str(round(height / 2, 2)))
        text_el.set("text-anchor", "middle")
        text_el.set("dominant-baseline", "central")
        text_el.set("font-family", "trebuchet ms, verdana, arial, sans-serif")
        text_el.set("font-size", "12" if edge_label else "14")
        text_el.set("fill", parent.get("fill") or "#333")
        text_el.text = text
        parent.insert(idx, text_el)

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
