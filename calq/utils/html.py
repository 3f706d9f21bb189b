"""HTML-to-text conversion for outbound email.

Digest bodies are rendered as HTML; the plain-text alternative part is
derived from the same markup so both stay in sync.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


def html_to_text(html: str) -> str:
    """Convert an HTML email body to readable plain text.

    Args:
        html: Rendered HTML.

    Returns:
        Text with one block element per line and blank-line runs collapsed.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    text = soup.get_text(separator="\n")

    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
