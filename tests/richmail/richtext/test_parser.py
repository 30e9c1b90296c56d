import pytest

from richmail.exceptions import MarkdownParseError
from richmail.richtext.parser import get_parser, parse_markdown, render_html


def node_types(node) -> list[str]:
    types = [node.type]
    for child in node.children:
        types.extend(node_types(child))
    return types


class TestParseMarkdown:
    def test_root_node(self):
        ast = parse_markdown("# Title\n\ntext")
        assert ast.type == "root"
        assert [child.type for child in ast.children] == ["heading", "paragraph"]

    def test_strikethrough_enabled(self):
        assert "s" in node_types(parse_markdown("~~gone~~"))

    def test_tables_not_enabled(self):
        ast = parse_markdown("| a | b |\n|---|---|\n| 1 | 2 |")
        assert "table" not in node_types(ast)
        assert ast.children[0].type == "paragraph"

    def test_line_map(self):
        ast = parse_markdown("one\n\ntwo")
        assert ast.children[1].map == (2, 3)

    def test_bytes_input(self):
        ast = parse_markdown("**fett** grüße".encode())
        assert "strong" in node_types(ast)

    def test_invalid_utf8(self):
        with pytest.raises(MarkdownParseError):
            parse_markdown(b"\xff\xfe broken")

    def test_singleton_parser(self):
        assert get_parser() is get_parser()


class TestRenderHtml:
    def test_renders_fragment(self):
        assert render_html("**x**") == "<p><strong>x</strong></p>\n"

    def test_strikethrough(self):
        assert render_html("~~x~~") == "<p><s>x</s></p>\n"

    def test_invalid_utf8(self):
        with pytest.raises(MarkdownParseError):
            render_html(b"\xff")
