"""Tests for page title and description derivation."""

from __future__ import annotations

from vark.config import DEFAULT_DESCRIPTION
from vark.core.metadata import document_description, document_title


class TestDocumentTitle:
    def test_first_line_without_markdown(self):
        assert document_title("# Hello **world**\nsecond line") == "Vark | Hello world"

    def test_empty_document(self):
        assert document_title("") == "Vark"

    def test_markdown_only_first_line(self):
        assert document_title("###\nbody") == "Vark"

    def test_long_title_is_truncated(self):
        title = document_title("x" * 80)
        assert title == "Vark | " + "x" * 50 + "..."

    def test_exactly_fifty_chars_is_not_truncated(self):
        assert document_title("y" * 50) == "Vark | " + "y" * 50


class TestDocumentDescription:
    def test_first_three_lines_joined(self):
        assert document_description("one\ntwo\nthree\nfour") == "one two three"

    def test_markdown_and_whitespace_removed(self):
        assert document_description("# Head\n\n*  spaced   out*") == "Head spaced out"

    def test_empty_document_uses_default(self):
        assert document_description("") == DEFAULT_DESCRIPTION

    def test_long_description_is_truncated(self):
        description = document_description("z" * 200)
        assert description == "z" * 160 + "..."
