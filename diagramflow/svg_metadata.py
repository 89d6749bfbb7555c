"""
Embed and extract document JSON inside SVG `<metadata>`.

An exported SVG stays re-editable: the picture is what people share, the
metadata carries the full source document.

    <metadata>
      <diagramflow:source xmlns:diagramflow="https://diagramflow.vscode/schema">
        {"meta":...,"nodes":...,"edges":...}
      </diagramflow:source>
    </metadata>

Extraction only checks that `nodes` and `edges` are arrays; full validation
is left to `diagramflow.validation`.
"""

import html
import json
import re
from typing import Optional
from xml.sax.saxutils import escape

from .models import DiagramDocument


DIAGRAM_NS = "https://diagramflow.vscode/schema"

_SOURCE_RE = re.compile(
    r"<diagramflow:source\b[^>]*>(.*?)</diagramflow:source\s*>",
    re.DOTALL,
)
_METADATA_RE = re.compile(
    r"<metadata\b[^>]*>\s*<diagramflow:source\b.*?</diagramflow:source\s*>\s*</metadata\s*>",
    re.DOTALL,
)
_SVG_OPEN_RE = re.compile(r"<svg\b[^>]*>")


def escape_xml(text: str) -> str:
    """Escape text for use as XML character data or attribute values."""
    return escape(text, {'"': "&quot;", "'": "&apos;"})


def build_metadata_element(doc: DiagramDocument) -> str:
    """Render the `<metadata>` element carrying the document JSON."""
    payload = escape_xml(json.dumps(doc.to_json_dict(), separators=(",", ":")))
    return (
        f'<metadata><diagramflow:source xmlns:diagramflow="{DIAGRAM_NS}">'
        f"{payload}</diagramflow:source></metadata>"
    )


def embed_diagram_in_svg(svg: str, doc: DiagramDocument) -> str:
    """
    Put the document into an SVG produced elsewhere.

    An existing DiagramFlow metadata element is replaced; otherwise the
    element is inserted right after the opening `<svg>` tag.

    Raises:
        ValueError: if the text has no `<svg>` element
    """
    element = build_metadata_element(doc)
    if _METADATA_RE.search(svg):
        return _METADATA_RE.sub(lambda _: element, svg, count=1)

    match = _SVG_OPEN_RE.search(svg)
    if match is None:
        raise ValueError("Not an SVG document: no <svg> element found")
    return svg[:match.end()] + element + svg[match.end():]


def extract_diagram_from_svg(svg: str) -> Optional[str]:
    """
    Pull the embedded document JSON out of an SVG.

    Args:
        svg: SVG text

    Returns:
        The JSON text if present, parseable and shaped like a document
        (array `nodes` and `edges`); otherwise None
    """
    match = _SOURCE_RE.search(svg)
    if not match:
        return None

    text = html.unescape(match.group(1)).strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None

    if not isinstance(parsed, dict):
        return None
    if not isinstance(parsed.get("nodes"), list) or not isinstance(parsed.get("edges"), list):
        return None
    return text
