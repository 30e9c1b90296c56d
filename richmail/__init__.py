from richmail.config import Settings
from richmail.logging_config import configure_logging
from richmail.renderer import RichTextRenderer


def create_renderer(
    settings: Settings | None = None,
) -> RichTextRenderer:
    if settings is None:
        settings = Settings()

    configure_logging(settings.log_level, settings.log_file)
    return RichTextRenderer.from_settings(settings)


__all__ = ["RichTextRenderer", "Settings", "create_renderer"]
