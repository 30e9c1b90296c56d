"""Flattening of nested inline style spans into non-overlapping runs.

Inline markup nests (a code span inside a link inside bold text), but the
renderer applies every InlineStyle on its own, so overlapping entries would
fight over the same characters. Spans are collected together with their
nesting depth and cut at every span boundary into minimal sub-runs, each
carrying the combined attributes of all spans active over it.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from enum import StrEnum, auto
from itertools import pairwise

from richmail.richtext.models import InlineStyle, TextAttributes


class SpanKind(StrEnum):
    BLOCK = auto()
    PREFIX = auto()
    BOLD = auto()
    ITALIC = auto()
    BOLD_ITALIC = auto()
    STRIKETHROUGH = auto()
    CODE = auto()
    LINK = auto()


@dataclass(frozen=True, slots=True)
class StyleSpan:
    """A styled range before flattening. Offsets are code points into the line."""

    start: int
    end: int
    kind: SpanKind
    attributes: TextAttributes
    fallback: TextAttributes = TextAttributes()
    depth: int = 0

    def shifted(self, offset: int) -> "StyleSpan":
        return replace(self, start=self.start + offset, end=self.end + offset)

    def clipped(self, lo: int, hi: int) -> "StyleSpan | None":
        """Intersect with [lo, hi) and rebase onto lo; None if nothing is left."""
        start = max(self.start, lo)
        end = min(self.end, hi)
        if start >= end:
            return None
        return replace(self, start=start - lo, end=end - lo)


Resolver = Callable[[Sequence[StyleSpan]], TextAttributes]


def layer_attributes(active: Sequence[StyleSpan]) -> TextAttributes:
    """Combine spans ordered outermost first.

    Explicit attributes of inner spans override outer ones. Whatever is still
    unset afterwards comes from the innermost span's fallback.
    """
    combined = TextAttributes()
    for span in active:
        combined = combined.overlay(span.attributes)
    if active:
        combined = combined.fill(active[-1].fallback)
    return combined


def flatten_spans(spans: Sequence[StyleSpan], resolve: Resolver = layer_attributes) -> list[InlineStyle]:
    """Flatten possibly overlapping spans into sorted, non-overlapping InlineStyles.

    Args:
        spans: Spans of a single line.
        resolve: Maps the spans active over a sub-run (outermost first) to its attributes.

    Returns:
        Runs sorted by start; runs without attributes are dropped and adjacent
        runs with equal attributes are merged.
    """
    if not spans:
        return []

    boundaries = sorted({span.start for span in spans} | {span.end for span in spans})
    ordered = sorted(spans, key=lambda span: span.depth)

    runs: list[InlineStyle] = []
    for lo, hi in pairwise(boundaries):
        active = [span for span in ordered if span.start <= lo and span.end >= hi]
        if not active:
            continue
        attributes = resolve(active)
        if attributes:
            runs.append(InlineStyle.from_attributes(lo, hi, attributes))

    return coalesce_runs(runs)


def coalesce_runs(runs: Sequence[InlineStyle]) -> list[InlineStyle]:
    """Merge touching runs that carry identical attributes."""
    merged: list[InlineStyle] = []
    for run in runs:
        if merged and merged[-1].end == run.start and merged[-1].attributes == run.attributes:
            merged[-1] = InlineStyle.from_attributes(merged[-1].start, run.end, run.attributes)
        else:
            merged.append(run)
    return merged


def split_lines(text: str, spans: Sequence[StyleSpan]) -> list[tuple[str, list[StyleSpan]]]:
    """Split text on newlines, clipping spans to each line with line-relative offsets."""
    lines: list[tuple[str, list[StyleSpan]]] = []
    offset = 0
    for line in text.split("\n"):
        end = offset + len(line)
        clipped = [part for span in spans if (part := span.clipped(offset, end)) is not None]
        lines.append((line, clipped))
        offset = end + 1
    return lines
