"""Style sheet loading and resolution.

The style sheet is a YAML document with a `defaults` block and one `styles`
entry per markdown element. The embedded default document is always the base
layer; an external document is merged over it key by key and the result is
resolved once into an immutable PreparedConfig that every conversion shares.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import cache
from importlib.resources import files
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any

import yaml
from loguru import logger
from pydantic import AfterValidator, BaseModel, Field, ValidationError, field_validator

from richmail.exceptions import ConfigParseError
from richmail.richtext.models import RGB16, TextAttributes

DEFAULT_STYLES_RESOURCE = "default_styles.yaml"

KNOWN_STYLES = (
    "paragraph",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "bold",
    "italic",
    "bold_italic",
    "strikethrough",
    "code",
    "code_block",
    "blockquote",
    "list",
    "list_item",
    "horizontal_rule",
    "link",
)

_WEB_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def web_color_to_rgb16(web_color: str) -> RGB16:
    """Convert #RRGGBB to 16-bit channels (0-65535), scaling each 8-bit channel by 257."""
    match = _WEB_COLOR_RE.match(web_color.strip())
    if not match:
        raise ValueError(f"invalid color format {web_color!r}: expected #RRGGBB")
    hex_value = match.group(1)
    red, green, blue = (int(hex_value[i : i + 2], 16) * 257 for i in (0, 2, 4))
    return red, green, blue


def _check_color(value: str | None) -> str | None:
    if value:
        web_color_to_rgb16(value)
    return value


WebColor = Annotated[str | None, AfterValidator(_check_color)]


# === RAW DOCUMENT (parsing only) ===


class PrefixConfig(BaseModel):
    content: str | None = None
    font: str | None = None
    size: int | None = Field(default=None, ge=0)
    color: WebColor = None


class StyleConfig(BaseModel):
    font: str | None = None
    size: int | None = Field(default=None, ge=0)
    color: WebColor = None
    margin_top: int | None = Field(default=None, ge=0)
    margin_bottom: int | None = Field(default=None, ge=0)
    prefix: PrefixConfig | None = None


class DefaultsConfig(BaseModel):
    font: str = Field(min_length=1)
    size: int = Field(gt=0)
    color: WebColor = None


class RenderingConfig(BaseModel):
    """The merged style document. Unknown top-level keys (e.g. a color palette) are ignored."""

    defaults: DefaultsConfig
    styles: dict[str, StyleConfig | None] = Field(default_factory=dict)

    @field_validator("styles", mode="before")
    @classmethod
    def _empty_styles(cls, value: Any) -> Any:
        return {} if value is None else value


# === PREPARED (resolved, read-only) ===


@dataclass(frozen=True, slots=True)
class PreparedPrefix:
    """Literal text prepended to every line of an element.

    Attributes left unset fall back to the line's own paragraph attributes.
    """

    content: str
    attributes: TextAttributes = TextAttributes()


@dataclass(frozen=True, slots=True)
class PreparedStyle:
    font: str | None = None
    size: int | None = None
    color: RGB16 | None = None
    margin_top: int | None = None
    margin_bottom: int | None = None
    prefix: PreparedPrefix | None = None
    # Attributes set on the element itself, without anything inherited from defaults
    overrides: TextAttributes = TextAttributes()

    @property
    def attributes(self) -> TextAttributes:
        return TextAttributes(font=self.font, size=self.size, color=self.color)


@dataclass(frozen=True)
class PreparedConfig:
    defaults: TextAttributes
    styles: Mapping[str, PreparedStyle]

    def style(self, name: str) -> PreparedStyle:
        try:
            return self.styles[name]
        except KeyError:
            raise KeyError(f"unknown style {name!r}") from None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.styles)


def _to_rgb(color: str | None) -> RGB16 | None:
    return web_color_to_rgb16(color) if color else None


def _prepare_prefix(raw: PrefixConfig | None) -> PreparedPrefix | None:
    if raw is None or not raw.content:
        return None
    return PreparedPrefix(
        content=raw.content,
        attributes=TextAttributes(font=raw.font or None, size=raw.size or None, color=_to_rgb(raw.color)),
    )


def _prepare_style(raw: StyleConfig | None, defaults: TextAttributes) -> PreparedStyle:
    if raw is None:
        return PreparedStyle(font=defaults.font, size=defaults.size, color=defaults.color)

    overrides = TextAttributes(font=raw.font or None, size=raw.size or None, color=_to_rgb(raw.color))

    # An explicit null color leaves the color to the renderer instead of inheriting defaults.color
    if "color" in raw.model_fields_set and raw.color is None:
        color = None
    else:
        color = overrides.color if overrides.color is not None else defaults.color

    return PreparedStyle(
        font=overrides.font or defaults.font,
        size=overrides.size or defaults.size,
        color=color,
        margin_top=raw.margin_top or None,
        margin_bottom=raw.margin_bottom or None,
        prefix=_prepare_prefix(raw.prefix),
        overrides=overrides,
    )


def prepare_config(raw: RenderingConfig) -> PreparedConfig:
    """Resolve every known (and any custom) element against the defaults block."""
    defaults = TextAttributes(font=raw.defaults.font, size=raw.defaults.size, color=_to_rgb(raw.defaults.color))
    names = [*KNOWN_STYLES, *(name for name in raw.styles if name not in KNOWN_STYLES)]
    styles = {name: _prepare_style(raw.styles.get(name), defaults) for name in names}
    return PreparedConfig(defaults=defaults, styles=MappingProxyType(styles))


# === LOADING ===


@cache
def _default_document() -> str:
    return files("richmail.richtext").joinpath(DEFAULT_STYLES_RESOURCE).read_text(encoding="utf-8")


def _parse_document(text: str | bytes, source: str) -> dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"failed to parse YAML: {e}", source=source) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigParseError(f"expected a mapping at top level, got {type(document).__name__}", source=source)
    return document


def _merge_layers(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge override into base.

    Explicit nulls replace scalar values (so `color: null` survives the merge)
    but never a whole section.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None and isinstance(merged.get(key), Mapping):
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge_layers(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config_from_text(text: str | bytes | None, *, source: str = "<string>") -> PreparedConfig:
    """Build a PreparedConfig from an override document layered over the embedded defaults.

    Args:
        text: YAML override document. None or blank uses the embedded defaults only.
        source: Name used in error messages.

    Raises:
        ConfigParseError: If the document is malformed or fails validation.
    """
    layer = _parse_document(_default_document(), DEFAULT_STYLES_RESOURCE)
    if text is not None and text.strip():
        layer = _merge_layers(layer, _parse_document(text, source))
    else:
        source = DEFAULT_STYLES_RESOURCE

    try:
        raw = RenderingConfig.model_validate(layer)
    except ValidationError as e:
        raise ConfigParseError(f"invalid style document: {e}", source=source) from e

    prepared = prepare_config(raw)
    logger.debug(f"Loaded {len(prepared.styles)} styles from {source}")
    return prepared


def load_config(path: str | Path | None = None) -> PreparedConfig:
    """Load the style sheet from a YAML file, or the embedded defaults if no path is given."""
    if not path:
        return load_config_from_text(None)

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"failed to read style document: {e}", source=str(path)) from e

    return load_config_from_text(text, source=str(path))
