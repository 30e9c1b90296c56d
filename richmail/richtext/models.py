"""Data models for the styled block output.

A StyledBlock is one paragraph-equivalent unit for the downstream renderer.
Its InlineStyles are character-range overrides whose offsets count Unicode
code points (Python str indices), never bytes, and never cover the trailing
newline.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

# 16-bit per channel RGB, the color format of the mail renderer
Channel = Annotated[int, Field(ge=0, le=65535)]
RGB16 = tuple[Channel, Channel, Channel]


class BlockType(StrEnum):
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    CODE_BLOCK = "code_block"
    BLOCKQUOTE = "blockquote"
    LIST_ITEM = "list_item"
    HORIZONTAL_RULE = "horizontal_rule"


@dataclass(frozen=True, slots=True)
class TextAttributes:
    """Font, size and color overrides; None means "not set at this layer"."""

    font: str | None = None
    size: int | None = None
    color: tuple[int, int, int] | None = None

    def __bool__(self) -> bool:
        return self.font is not None or self.size is not None or self.color is not None

    def overlay(self, other: "TextAttributes") -> "TextAttributes":
        """Return these attributes with every value set in `other` taking precedence."""
        return TextAttributes(
            font=other.font if other.font is not None else self.font,
            size=other.size if other.size is not None else self.size,
            color=other.color if other.color is not None else self.color,
        )

    def fill(self, other: "TextAttributes") -> "TextAttributes":
        """Return these attributes with unset values taken from `other`."""
        return other.overlay(self)


class InlineStyle(BaseModel):
    """Attribute override for the half-open code point range [start, end)."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    end: int = Field(ge=0)
    font: str | None = None
    size: int | None = None
    color: RGB16 | None = None

    @model_validator(mode="after")
    def _check_range(self) -> Self:
        if self.end < self.start:
            raise ValueError(f"inline style ends before it starts: [{self.start}, {self.end})")
        return self

    @classmethod
    def from_attributes(cls, start: int, end: int, attributes: TextAttributes) -> "InlineStyle":
        return cls(start=start, end=end, font=attributes.font, size=attributes.size, color=attributes.color)

    @property
    def attributes(self) -> TextAttributes:
        return TextAttributes(font=self.font, size=self.size, color=self.color)

    def shifted(self, offset: int) -> "InlineStyle":
        return InlineStyle.from_attributes(self.start + offset, self.end + offset, self.attributes)


class StyledBlock(BaseModel):
    """One renderable unit. Margin blocks are untagged (type is None) and hold a lone newline."""

    model_config = ConfigDict(frozen=True)

    type: BlockType | None = None
    text: str
    font: str | None = None
    size: int | None = None
    level: int | None = None
    inline_styles: list[InlineStyle] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.type is None:
            if self.text != "\n":
                raise ValueError(f"margin block text must be a single newline, got {self.text!r}")
        elif not self.text.endswith("\n") or "\n" in self.text[:-1]:
            raise ValueError(f"block text must end with exactly one newline and contain no other: {self.text!r}")

        limit = len(self.text) - 1
        previous_end = 0
        for style in self.inline_styles:
            if style.end > limit:
                raise ValueError(f"inline style [{style.start}, {style.end}) exceeds text length {limit}")
            if style.start < previous_end:
                raise ValueError(f"inline style [{style.start}, {style.end}) overlaps the previous run")
            previous_end = style.end
        return self

    @property
    def is_margin(self) -> bool:
        return self.type is None

    def to_record(self) -> dict[str, Any]:
        """Flat record handed to the renderer; unset attributes are omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class ConversionDiagnostic(BaseModel):
    """A node that was passed through as plain text instead of being styled."""

    node_type: str
    line: int | None = None
    message: str


class ConversionResult(BaseModel):
    blocks: list[StyledBlock]
    diagnostics: list[ConversionDiagnostic] = Field(default_factory=list)

    def to_records(self) -> list[dict[str, Any]]:
        return [block.to_record() for block in self.blocks]
