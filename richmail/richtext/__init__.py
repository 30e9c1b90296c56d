"""Markdown parsing and conversion to styled rich text blocks."""

from richmail.richtext.converter import (
    BlockConverter,
    convert_to_styled_blocks,
)
from richmail.richtext.models import (
    BlockType,
    ConversionDiagnostic,
    ConversionResult,
    InlineStyle,
    StyledBlock,
    TextAttributes,
)
from richmail.richtext.parser import parse_markdown, render_html
from richmail.richtext.styles import (
    PreparedConfig,
    PreparedStyle,
    load_config,
    load_config_from_text,
    web_color_to_rgb16,
)

__all__ = [
    # Parser
    "parse_markdown",
    "render_html",
    # Converter
    "BlockConverter",
    "convert_to_styled_blocks",
    # Styles
    "PreparedConfig",
    "PreparedStyle",
    "load_config",
    "load_config_from_text",
    "web_color_to_rgb16",
    # Models
    "BlockType",
    "StyledBlock",
    "InlineStyle",
    "TextAttributes",
    "ConversionDiagnostic",
    "ConversionResult",
]
