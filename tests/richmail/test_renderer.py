import pytest
from loguru import logger

from richmail import RichTextRenderer, Settings, create_renderer
from richmail.exceptions import ConversionError, MarkdownParseError, RichTextError


@pytest.fixture
def restore_logging():
    yield
    logger.remove()


class TestRichTextRenderer:
    def test_render(self, plain_config):
        result = RichTextRenderer(plain_config).render("Hello **world**")
        assert [block.text for block in result.blocks] == ["Hello world\n"]
        assert result.diagnostics == []

    def test_render_records(self, plain_config):
        records = RichTextRenderer(plain_config).render_records("# Title")
        assert records == [
            {
                "type": "heading",
                "text": "Title\n",
                "font": "Helvetica-Bold",
                "size": 24,
                "level": 1,
                "inline_styles": [],
            }
        ]

    def test_bytes_input(self, plain_config):
        result = RichTextRenderer(plain_config).render("grüße".encode())
        assert result.blocks[0].text == "grüße\n"

    def test_invalid_bytes(self, plain_config):
        with pytest.raises(MarkdownParseError):
            RichTextRenderer(plain_config).render(b"\xff")

    def test_diagnostics_are_returned(self, plain_config):
        result = RichTextRenderer(plain_config).render("text\n\n<div>raw</div>")
        assert [d.node_type for d in result.diagnostics] == ["html_block"]
        assert result.blocks[-1].text == "<div>raw</div>\n"

    def test_strict(self, plain_config):
        with pytest.raises(ConversionError):
            RichTextRenderer(plain_config, strict=True).render("<div>raw</div>")

    def test_from_settings(self, style_file):
        path = style_file("defaults:\n  font: Georgia\n")
        renderer = RichTextRenderer.from_settings(Settings(styles_file=str(path), strict_conversion=True))
        assert renderer.strict
        assert renderer.config.defaults.font == "Georgia"


class TestCreateRenderer:
    def test_defaults(self, restore_logging):
        renderer = create_renderer(Settings(_env_file=None))
        assert not renderer.strict
        assert renderer.config.style("h1").font == "Helvetica-Bold"

    def test_settings_from_environment(self, monkeypatch, style_file):
        path = style_file("defaults:\n  size: 13\n")
        monkeypatch.setenv("RICHMAIL_STYLES_FILE", str(path))
        monkeypatch.setenv("RICHMAIL_STRICT_CONVERSION", "true")
        settings = Settings(_env_file=None)
        assert settings.styles_file == str(path)
        assert settings.strict_conversion
        assert RichTextRenderer.from_settings(settings).config.defaults.size == 13

    def test_log_file_sink(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "richmail.jsonl"
        create_renderer(Settings(_env_file=None, log_file=str(log_file), log_level="DEBUG"))
        assert log_file.exists()


class TestErrors:
    def test_to_dict(self):
        error = ConversionError("unsupported block", node_type="table", line=4)
        assert str(error) == "unsupported block (line 4)"
        assert error.to_dict() == {
            "error": "ConversionError",
            "detail": "unsupported block (line 4)",
            "node_type": "table",
            "line": 4,
        }

    def test_hierarchy(self):
        assert issubclass(ConversionError, RichTextError)
        assert issubclass(MarkdownParseError, RichTextError)
