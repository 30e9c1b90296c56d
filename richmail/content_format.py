"""The content_format option of the mail tools: plain text or markdown bodies."""

from enum import StrEnum

from richmail.exceptions import InvalidContentFormatError
from richmail.richtext.parser import render_html


class ContentFormat(StrEnum):
    PLAIN = "plain"
    MARKDOWN = "markdown"


DEFAULT_CONTENT_FORMAT = ContentFormat.MARKDOWN


def normalize_content_format(value: str | None) -> ContentFormat:
    """Validate a user-supplied content_format, case-insensitively.

    None or blank selects the default (markdown).

    Raises:
        InvalidContentFormatError: For anything other than plain or markdown
    """
    if value is None:
        return DEFAULT_CONTENT_FORMAT

    normalized = value.strip().lower()
    if not normalized:
        return DEFAULT_CONTENT_FORMAT

    try:
        return ContentFormat(normalized)
    except ValueError:
        raise InvalidContentFormatError(normalized) from None


def is_valid_content_format(value: str) -> bool:
    return value in {content_format.value for content_format in ContentFormat}


def to_paste_content(content: str, content_format: ContentFormat | str) -> tuple[str, bool]:
    """Return the content to paste into a message body and whether it is HTML.

    Markdown is rendered to HTML; plain text is passed through verbatim.
    """
    content_format = normalize_content_format(content_format)
    if content_format is ContentFormat.MARKDOWN:
        return render_html(content), True
    return content, False
