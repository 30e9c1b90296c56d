"""Convert a markdown AST into StyledBlocks.

Walks the markdown-it SyntaxTreeNode tree and emits one StyledBlock per
rendered line. The downstream renderer has no paragraph margins, so vertical
spacing is simulated with margin blocks (a lone newline whose size is the
margin), and every multi-line construct is split into single-line blocks.

Block handling:
- Headings flatten their inline content into one line
- Paragraphs split on hard breaks, soft breaks become spaces
- Code blocks emit one prefixed line per source line
- Blockquotes convert their children and prefix every line
- Lists emit a marker line per item, nested lists one level deeper
- Raw HTML and unknown nodes pass through as plain text with a diagnostic
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import NamedTuple

from loguru import logger
from markdown_it.tree import SyntaxTreeNode
from pydantic import ValidationError

from richmail.exceptions import ConversionError
from richmail.richtext.models import BlockType, ConversionDiagnostic, InlineStyle, StyledBlock, TextAttributes
from richmail.richtext.parser import decode_source, get_parser
from richmail.richtext.runs import SpanKind, StyleSpan, flatten_spans, layer_attributes, split_lines
from richmail.richtext.styles import PreparedConfig, PreparedPrefix, PreparedStyle

HORIZONTAL_RULE = "─" * 37
BULLET = "• "
MAX_LIST_LEVEL = 3

# A spacer line separates two quote children when the later one is of these kinds
_SPACED_BEFORE = {"heading", "fence", "code_block", "blockquote", "bullet_list", "ordered_list"}


@dataclass(frozen=True)
class _Context:
    """Where the current node sits: the style paragraphs use, and whether it is inside a quote."""

    paragraph_style: str = "paragraph"
    in_quote: bool = False


class _Margins(NamedTuple):
    top: int | None
    bottom: int | None
    font: str | None


class _InlineText:
    """Accumulates the plain text of an inline run together with its style spans."""

    def __init__(self, *, hard_breaks: bool = True):
        self.hard_breaks = hard_breaks
        self.spans: list[StyleSpan] = []
        self._parts: list[str] = []
        self._length = 0

    @property
    def position(self) -> int:
        return self._length

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def append(self, text: str) -> None:
        text = text.replace("\r\n", " ").replace("\n", " ")
        self._parts.append(text)
        self._length += len(text)

    def line_break(self) -> None:
        if not self.hard_breaks:
            self.append(" ")
            return
        self._parts.append("\n")
        self._length += 1

    def add_span(self, start: int, kind: SpanKind, style: PreparedStyle, depth: int) -> None:
        if self._length > start:
            self.spans.append(StyleSpan(start, self._length, kind, style.overrides, depth=depth))


class BlockConverter:
    """Converts one markdown AST into a flat list of StyledBlocks.

    Holds per-conversion state (diagnostics, current line); build one per call
    or share only between sequential calls.
    """

    def __init__(self, config: PreparedConfig, source: str | bytes | None = None, *, strict: bool = False):
        self.config = config
        self.strict = strict
        self.diagnostics: list[ConversionDiagnostic] = []
        self._source_lines = decode_source(source).split("\n") if source else []
        self._line: int | None = None

        self._handlers = {
            "paragraph": self._convert_paragraph,
            "heading": self._convert_heading,
            "fence": self._convert_code_block,
            "code_block": self._convert_code_block,
            "blockquote": self._convert_blockquote,
            "bullet_list": self._convert_list,
            "ordered_list": self._convert_list,
            "hr": self._convert_rule,
        }

    def convert(self, ast: SyntaxTreeNode) -> list[StyledBlock]:
        """Convert a parsed document.

        Args:
            ast: Root node from parse_markdown (any other node is converted on its own)

        Returns:
            The blocks in document order

        Raises:
            ConversionError: In strict mode for unsupported nodes, or if a block breaks an output invariant
        """
        self.diagnostics = []
        nodes = ast.children if ast.type == "root" else [ast]
        try:
            return self._convert_blocks(nodes, _Context())
        except ValidationError as e:
            raise ConversionError(f"invalid block produced: {e}", line=self._line) from e

    # === BLOCK SEQUENCES ===

    def _convert_blocks(self, nodes: Sequence[SyntaxTreeNode], ctx: _Context) -> list[StyledBlock]:
        """Convert sibling nodes, adding margins and (inside quotes) spacer lines between them."""
        blocks: list[StyledBlock] = []
        previous: SyntaxTreeNode | None = None

        for node in nodes:
            content = self._convert_node(node, ctx)
            if not content:
                continue

            if ctx.in_quote and previous is not None and _needs_spacer(previous, node):
                quote = self.config.style("blockquote")
                blocks.append(_margin_block(quote.font, quote.size))

            margins = self._margins(node, ctx)
            if blocks and margins.top:
                blocks.append(_margin_block(margins.font, margins.top))
            blocks.extend(content)
            if margins.bottom:
                blocks.append(_margin_block(margins.font, margins.bottom))
            previous = node

        return blocks

    def _convert_node(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        if node.map:
            self._line = node.map[0] + 1

        handler = self._handlers.get(node.type)
        if handler is None:
            return self._pass_through_block(node, ctx)
        return handler(node, ctx)

    def _margins(self, node: SyntaxTreeNode, ctx: _Context) -> _Margins:
        if node.type == "heading":
            style = self.config.style(node.tag)
        elif node.type == "paragraph":
            # The quote's margins belong to the quote, not to each of its paragraphs
            if ctx.in_quote:
                return _Margins(None, None, None)
            style = self.config.style(ctx.paragraph_style)
        elif node.type in ("fence", "code_block"):
            style = self.config.style("code_block")
        elif node.type == "blockquote":
            style = self.config.style("blockquote")
        elif node.type in ("bullet_list", "ordered_list"):
            style = self.config.style("list")
            return _Margins(style.margin_top, style.margin_bottom, self.config.style("list_item").font)
        elif node.type == "hr":
            style = self.config.style("horizontal_rule")
        else:
            return _Margins(None, None, None)
        return _Margins(style.margin_top, style.margin_bottom, style.font)

    # === BLOCK HANDLERS ===

    def _convert_heading(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        level = int(node.tag[1:])
        style = self.config.style(node.tag)
        builder = _InlineText(hard_breaks=False)
        self._collect_children(node, builder)
        return self._build_lines(builder, BlockType.HEADING, style, level=level)

    def _convert_paragraph(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        style = self.config.style(ctx.paragraph_style)
        builder = _InlineText()
        self._collect_children(node, builder)
        return self._build_lines(builder, BlockType.PARAGRAPH, style)

    def _convert_code_block(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        style = self.config.style("code_block")
        color = self._block_color(style)
        prefix = style.prefix.content if style.prefix else ""
        prefix_runs = _prefix_runs(style.prefix)

        literal = node.content
        if literal.endswith("\n"):
            literal = literal[:-1]

        blocks = []
        for line in literal.split("\n"):
            runs = list(prefix_runs)
            if color is not None and line:
                runs.append(InlineStyle(start=len(prefix), end=len(prefix) + len(line), color=color))
            blocks.append(
                StyledBlock(
                    type=BlockType.CODE_BLOCK,
                    text=f"{prefix}{line}\n",
                    font=style.font,
                    size=style.size,
                    inline_styles=runs,
                )
            )
        return blocks

    def _convert_blockquote(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        style = self.config.style("blockquote")
        inner = self._convert_blocks(node.children, _Context(paragraph_style="blockquote", in_quote=True))
        return _apply_prefix(inner, style.prefix, spacer_type=BlockType.BLOCKQUOTE)

    def _convert_list(self, node: SyntaxTreeNode, ctx: _Context, level: int = 0) -> list[StyledBlock]:
        level = min(level, MAX_LIST_LEVEL)
        ordered = node.type == "ordered_list"
        number = int(node.attrs.get("start", 1)) if ordered else 0

        blocks = []
        for item in node.children:
            if item.type != "list_item":
                blocks.extend(self._pass_through_block(item, ctx))
                continue
            indent = "  " * level
            marker = f"{indent}{number}. " if ordered else f"{indent}{BULLET}"
            blocks.extend(self._convert_list_item(item, ctx, marker, level))
            number += 1
        return blocks

    def _convert_list_item(self, node: SyntaxTreeNode, ctx: _Context, marker: str, level: int) -> list[StyledBlock]:
        style = self.config.style("list_item")
        continuation = " " * len(marker)

        blocks: list[StyledBlock] = []
        has_marker_line = False
        for child in node.children:
            if child.map:
                self._line = child.map[0] + 1

            if child.type == "paragraph":
                builder = _InlineText()
                self._collect_children(child, builder)
                lead = continuation if has_marker_line else marker
                lines = self._build_lines(
                    builder, BlockType.LIST_ITEM, style, level=level, lead=lead, rest=continuation
                )
                has_marker_line = has_marker_line or bool(lines)
                blocks.extend(lines)
            elif child.type in ("bullet_list", "ordered_list"):
                if not has_marker_line:
                    blocks.append(self._marker_line(marker, style, level))
                    has_marker_line = True
                blocks.extend(self._convert_list(child, ctx, level + 1))
            else:
                if not has_marker_line:
                    blocks.append(self._marker_line(marker, style, level))
                    has_marker_line = True
                nested = self._convert_blocks([child], ctx)
                blocks.extend(_apply_prefix(nested, PreparedPrefix(continuation), spacer_type=None))

        if not has_marker_line:
            blocks.append(self._marker_line(marker, style, level))
        return blocks

    def _marker_line(self, marker: str, style: PreparedStyle, level: int) -> StyledBlock:
        lines = self._build_lines(_InlineText(), BlockType.LIST_ITEM, style, level=level, lead=marker, keep_empty=True)
        return lines[0]

    def _convert_rule(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        style = self.config.style("horizontal_rule")
        builder = _InlineText()
        builder.append(HORIZONTAL_RULE)
        return self._build_lines(builder, BlockType.HORIZONTAL_RULE, style)

    def _pass_through_block(self, node: SyntaxTreeNode, ctx: _Context) -> list[StyledBlock]:
        line = node.map[0] + 1 if node.map else self._line
        self._unsupported(node.type, line, f"unsupported block {node.type!r} passed through as plain text")

        text = node.content
        if not text and node.map and self._source_lines:
            text = "\n".join(self._source_lines[node.map[0] : node.map[1]])

        style = self.config.style(ctx.paragraph_style)
        blocks = []
        for raw in text.split("\n"):
            builder = _InlineText()
            builder.append(raw)
            blocks.extend(self._build_lines(builder, BlockType.PARAGRAPH, style))
        return blocks

    # === LINES ===

    def _block_color(self, style: PreparedStyle) -> tuple[int, int, int] | None:
        """Color for a block's base layer: the resolved element color, inherited from defaults when unset."""
        return style.color

    def _build_lines(
        self,
        builder: _InlineText,
        block_type: BlockType,
        style: PreparedStyle,
        *,
        level: int | None = None,
        lead: str = "",
        rest: str | None = None,
        keep_empty: bool = False,
    ) -> list[StyledBlock]:
        """Split accumulated inline text into one block per line.

        Args:
            builder: Collected text and spans
            block_type: Type of every produced block
            style: Element style for font, size and base color
            level: Heading level or list depth
            lead: Text before the first line (e.g. a list marker)
            rest: Text before every later line, defaults to lead
            keep_empty: Emit lines with no content instead of skipping them
        """
        color = self._block_color(style)
        rest = lead if rest is None else rest

        blocks = []
        for line, spans in split_lines(builder.text, builder.spans):
            if not line and not keep_empty:
                continue
            prefix = rest if blocks else lead
            width = len(prefix) + len(line)
            # Inline elements take whatever they leave unset from the block itself
            line_spans = [replace(span.shifted(len(prefix)), fallback=style.attributes) for span in spans]
            if color is not None and width:
                line_spans.insert(0, StyleSpan(0, width, SpanKind.BLOCK, TextAttributes(color=color)))
            blocks.append(
                StyledBlock(
                    type=block_type,
                    text=f"{prefix}{line}\n",
                    font=style.font,
                    size=style.size,
                    level=level,
                    inline_styles=flatten_spans(line_spans, self._resolve),
                )
            )
        return blocks

    def _resolve(self, active: Sequence[StyleSpan]) -> TextAttributes:
        """Layer active spans, replacing a bold + italic pair by the combined bold_italic style."""
        emphasis = [span for span in active if span.kind in (SpanKind.BOLD, SpanKind.ITALIC)]
        if {span.kind for span in emphasis} == {SpanKind.BOLD, SpanKind.ITALIC}:
            style = self.config.style("bold_italic")
            combined = StyleSpan(
                0, 0, SpanKind.BOLD_ITALIC, style.overrides, emphasis[0].fallback, max(span.depth for span in emphasis)
            )
            rest = [span for span in active if span.kind not in (SpanKind.BOLD, SpanKind.ITALIC)]
            active = sorted([*rest, combined], key=lambda span: span.depth)
        return layer_attributes(active)

    # === INLINE ===

    def _collect_children(self, node: SyntaxTreeNode, builder: _InlineText, depth: int = 1) -> None:
        for child in node.children:
            if child.type == "inline":
                self._collect_children(child, builder, depth)
            else:
                self._collect_inline(child, builder, depth)

    def _collect_inline(self, node: SyntaxTreeNode, builder: _InlineText, depth: int) -> None:
        start = builder.position

        if node.type == "text":
            builder.append(node.content)
        elif node.type == "softbreak":
            builder.append(" ")
        elif node.type == "hardbreak":
            builder.line_break()
        elif node.type == "em":
            self._collect_children(node, builder, depth + 1)
            builder.add_span(start, SpanKind.ITALIC, self.config.style("italic"), depth)
        elif node.type == "strong":
            self._collect_children(node, builder, depth + 1)
            builder.add_span(start, SpanKind.BOLD, self.config.style("bold"), depth)
        elif node.type == "s":
            self._collect_children(node, builder, depth + 1)
            builder.add_span(start, SpanKind.STRIKETHROUGH, self.config.style("strikethrough"), depth)
        elif node.type == "code_inline":
            builder.append(node.content)
            builder.add_span(start, SpanKind.CODE, self.config.style("code"), depth)
        elif node.type == "link":
            href = get_parser().normalizeLinkText(str(node.attrs.get("href", "")))
            self._collect_children(node, builder, depth + 1)
            builder.add_span(start, SpanKind.LINK, self.config.style("link"), depth)
            if node.markup != "autolink" and href:
                builder.append(f" ({href})" if builder.position > start else href)
        elif node.type == "image":
            src = get_parser().normalizeLinkText(str(node.attrs.get("src", "")))
            builder.append(f"{node.content} ({src})" if node.content else src)
        else:
            self._unsupported(node.type, self._line, f"unsupported inline {node.type!r} passed through as plain text")
            if node.children:
                self._collect_children(node, builder, depth)
            else:
                builder.append(node.content)

    # === DIAGNOSTICS ===

    def _unsupported(self, node_type: str, line: int | None, message: str) -> None:
        if self.strict:
            raise ConversionError(message, node_type=node_type, line=line)
        logger.debug(f"{message} (line {line})")
        self.diagnostics.append(ConversionDiagnostic(node_type=node_type, line=line, message=message))


def _needs_spacer(previous: SyntaxTreeNode, current: SyntaxTreeNode) -> bool:
    if previous.type == "paragraph" and current.type == "paragraph":
        return True
    return current.type in _SPACED_BEFORE


def _margin_block(font: str | None, size: int | None) -> StyledBlock:
    return StyledBlock(text="\n", font=font, size=size)


def _prefix_runs(prefix: PreparedPrefix | None) -> list[InlineStyle]:
    if prefix is None or not prefix.attributes:
        return []
    return [InlineStyle.from_attributes(0, len(prefix.content), prefix.attributes)]


def _apply_prefix(
    blocks: Sequence[StyledBlock], prefix: PreparedPrefix | None, *, spacer_type: BlockType | None
) -> list[StyledBlock]:
    """Prepend prefix text to every content line, shifting its inline styles.

    Margin blocks become spacer lines holding just the prefix when spacer_type
    is given, otherwise they are kept unchanged.
    """
    if prefix is None or not prefix.content:
        return list(blocks)

    width = len(prefix.content)
    prefix_runs = _prefix_runs(prefix)

    result = []
    for block in blocks:
        if block.is_margin:
            if spacer_type is None:
                result.append(block)
            else:
                result.append(
                    StyledBlock(
                        type=spacer_type,
                        text=f"{prefix.content}\n",
                        font=block.font,
                        size=block.size,
                        inline_styles=prefix_runs,
                    )
                )
            continue

        result.append(
            StyledBlock(
                type=block.type,
                text=prefix.content + block.text,
                font=block.font,
                size=block.size,
                level=block.level,
                inline_styles=[*prefix_runs, *(style.shifted(width) for style in block.inline_styles)],
            )
        )
    return result


def convert_to_styled_blocks(
    ast: SyntaxTreeNode, source: str | bytes | None, config: PreparedConfig, *, strict: bool = False
) -> list[StyledBlock]:
    """Convert a parsed markdown document into StyledBlocks.

    Args:
        ast: Root node from parse_markdown
        source: The markdown the AST was parsed from, used to pass unknown blocks through
        config: Prepared style sheet
        strict: Raise instead of passing unsupported nodes through

    Returns:
        Blocks in document order

    Raises:
        ConversionError: On unsupported nodes in strict mode or broken output invariants
    """
    return BlockConverter(config, source, strict=strict).convert(ast)
