"""
Tests for document metadata embedded in SVG
"""
import json

import pytest

from diagramflow import (
    DiagramDocument,
    build_metadata_element,
    embed_diagram_in_svg,
    extract_diagram_from_svg,
)
from diagramflow.svg_metadata import DIAGRAM_NS

SVG = '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><rect/></svg>'


class TestEmbed:
    """Tests for embedding a document"""

    def test_inserted_after_svg_tag(self, sample_doc):
        """Test metadata goes right after the opening svg tag"""
        out = embed_diagram_in_svg(SVG, sample_doc)

        assert out.startswith('<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><metadata>')
        assert out.endswith("<rect/></svg>")
        assert DIAGRAM_NS in out

    def test_replaces_existing(self, sample_doc, empty_doc):
        """Test embedding twice keeps a single metadata element"""
        once = embed_diagram_in_svg(SVG, empty_doc)
        twice = embed_diagram_in_svg(once, sample_doc)

        assert twice.count("<metadata>") == 1
        assert json.loads(extract_diagram_from_svg(twice))["meta"]["title"] == "Sample"

    def test_escapes_markup(self, empty_doc):
        """Test labels with markup characters are escaped"""
        empty_doc.meta.title = 'A <b> & "c"'

        element = build_metadata_element(empty_doc)

        assert "<b>" not in element
        assert "&lt;b&gt;" in element

    def test_not_an_svg(self, sample_doc):
        """Test text without an svg element is rejected"""
        with pytest.raises(ValueError):
            embed_diagram_in_svg("<html></html>", sample_doc)


class TestExtract:
    """Tests for extracting a document"""

    def test_embedded_document_comes_back(self, sample_doc):
        """Test extraction returns the same document"""
        sample_doc.get_node("api").notes = "uses <TLS> & auth"
        svg = embed_diagram_in_svg(SVG, sample_doc)

        text = extract_diagram_from_svg(svg)

        assert DiagramDocument.from_json_dict(json.loads(text)) == sample_doc

    def test_no_metadata(self):
        """Test a plain SVG gives None"""
        assert extract_diagram_from_svg(SVG) is None

    @pytest.mark.parametrize("payload", [
        "",
        "{not json",
        "[1, 2]",
        '{"nodes": [], "edges": {}}',
        '{"meta": {}}',
    ])
    def test_malformed_payload(self, payload):
        """Test bad payloads give None instead of raising"""
        svg = (
            f'<svg><metadata><diagramflow:source xmlns:diagramflow="{DIAGRAM_NS}">'
            f"{payload}</diagramflow:source></metadata></svg>"
        )

        assert extract_diagram_from_svg(svg) is None
