"""Markdown to StyledBlock rendering with a bound style sheet."""

from typing import Any

from loguru import logger

from richmail.config import Settings
from richmail.richtext.converter import BlockConverter
from richmail.richtext.models import ConversionResult
from richmail.richtext.parser import decode_source, parse_markdown
from richmail.richtext.styles import PreparedConfig, load_config


class RichTextRenderer:
    """Parses markdown and converts it with one PreparedConfig.

    The config is immutable, so one renderer can serve any number of calls.
    """

    def __init__(self, config: PreparedConfig, *, strict: bool = False):
        self.config = config
        self.strict = strict

    @classmethod
    def from_settings(cls, settings: Settings) -> "RichTextRenderer":
        return cls(load_config(settings.styles_file), strict=settings.strict_conversion)

    def render(self, markdown: str | bytes) -> ConversionResult:
        """Convert markdown into blocks plus the diagnostics for anything passed through unstyled.

        Raises:
            MarkdownParseError: If the markdown cannot be decoded or parsed
            ConversionError: In strict mode on unsupported nodes, or on an invalid block
        """
        text = decode_source(markdown)
        ast = parse_markdown(text)

        converter = BlockConverter(self.config, text, strict=self.strict)
        blocks = converter.convert(ast)

        for diagnostic in converter.diagnostics:
            logger.warning(f"Line {diagnostic.line}: {diagnostic.message}")
        logger.debug(f"Rendered {len(text)} chars of markdown into {len(blocks)} blocks")

        return ConversionResult(blocks=blocks, diagnostics=converter.diagnostics)

    def render_records(self, markdown: str | bytes) -> list[dict[str, Any]]:
        return self.render(markdown).to_records()
