from collections.abc import Callable
from pathlib import Path

import pytest

from richmail.richtext.styles import PreparedConfig, load_config, load_config_from_text

# Flat styling without margins. No document color, so only elements that set
# their own color produce color runs.
PLAIN_STYLES = """
defaults:
  font: "Helvetica"
  size: 12

styles:
  paragraph:
    font: "Helvetica"
    size: 12
  h1:
    font: "Helvetica-Bold"
    size: 24
    margin_top: 0
  h2:
    font: "Helvetica-Bold"
    size: 20
    margin_top: 0
  h3:
    margin_top: 0
  h4:
    margin_top: 0
  h5:
    margin_top: 0
  h6:
    margin_top: 0
  bold:
    font: "Helvetica-Bold"
  italic:
    font: "Helvetica-Oblique"
  bold_italic:
    font: "Helvetica-BoldOblique"
  strikethrough:
    color: "#6A737D"
  code:
    font: "Menlo-Regular"
    size: 11
    color: "#D73A49"
  code_block:
    font: "Menlo-Regular"
    size: 11
    color: "#24292E"
  blockquote:
    font: "Helvetica-Oblique"
    size: 12
    color: "#6A737D"
    margin_top: 0
    margin_bottom: 0
    prefix:
      content: "> "
      font: ""
      color: ""
  list:
    margin_top: 0
  list_item:
    font: "Helvetica"
    size: 12
  horizontal_rule:
    color: "#E1E4E8"
  link:
    color: "#0366D6"
"""


@pytest.fixture
def plain_config() -> PreparedConfig:
    return load_config_from_text(PLAIN_STYLES, source="plain_styles.yaml")


@pytest.fixture
def default_config() -> PreparedConfig:
    return load_config()


@pytest.fixture
def style_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write a YAML style document and return its path."""

    def _write(content: str, name: str = "styles.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
