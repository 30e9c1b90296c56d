"""Markdown parsing using markdown-it-py.

Configures markdown-it with the plugins we need:
- CommonMark base
- GFM strikethrough (~~text~~)

Tables are left disabled on purpose; the block converter has no table model.
"""

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from richmail.exceptions import MarkdownParseError


def create_parser() -> MarkdownIt:
    """Create configured markdown-it parser."""
    md = MarkdownIt("commonmark")
    md.enable("strikethrough")
    return md


# Singleton parser instance
_parser: MarkdownIt | None = None


def get_parser() -> MarkdownIt:
    """Get or create the singleton parser instance."""
    global _parser
    if _parser is None:
        _parser = create_parser()
    return _parser


def decode_source(source: str | bytes) -> str:
    """Return markdown source as text, decoding UTF-8 bytes."""
    if isinstance(source, str):
        return source
    try:
        return source.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MarkdownParseError(f"markdown source is not valid UTF-8: {e}") from e


def parse_markdown(source: str | bytes) -> SyntaxTreeNode:
    """Parse markdown text into AST.

    Args:
        source: Markdown text, or UTF-8 encoded bytes

    Returns:
        Root SyntaxTreeNode of the AST

    Raises:
        MarkdownParseError: If the source cannot be decoded or parsed
    """
    text = decode_source(source)
    try:
        tokens = get_parser().parse(text)
    except Exception as e:
        raise MarkdownParseError(f"failed to parse markdown: {e}") from e
    return SyntaxTreeNode(tokens)


def render_html(source: str | bytes) -> str:
    """Render markdown to an HTML fragment with the same parser configuration."""
    text = decode_source(source)
    try:
        return get_parser().render(text)
    except Exception as e:
        raise MarkdownParseError(f"failed to render markdown: {e}") from e
