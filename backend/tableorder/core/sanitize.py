"""Text sanitization utilities to prevent XSS attacks."""

import html


def sanitize_text(value: str | None) -> str | None:
    """HTML-escape user-supplied text before it is stored.

    Customer names and order notes are rendered on staff dashboards and
    printed bills, so they must never be interpreted as markup.
    """
    if value is None:
        return None
    return html.escape(value.strip(), quote=True)
