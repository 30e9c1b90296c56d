from typing import Any


class RichTextError(Exception):
    """Base exception for all rich text conversion errors."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary callers can surface as-is."""
        return {"error": type(self).__name__, "detail": str(self)}


class ConfigParseError(RichTextError):
    """Raised when a style document cannot be read, parsed or validated."""

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "source": self.source}


class MarkdownParseError(RichTextError):
    """Raised when markdown source cannot be decoded or parsed."""


class ConversionError(RichTextError):
    """Raised for unsupported nodes in strict mode or broken output invariants."""

    def __init__(self, message: str, *, node_type: str | None = None, line: int | None = None):
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{location}")
        self.node_type = node_type
        self.line = line

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "node_type": self.node_type, "line": self.line}


class InvalidContentFormatError(RichTextError):
    """Raised for a content_format value other than plain or markdown."""

    def __init__(self, value: str, *, message: str | None = None):
        super().__init__(message or f"invalid content_format: {value!r}")
        self.value = value
