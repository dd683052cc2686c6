"""
URL slug generation for tour names.

"The Forest Hiker" → "the-forest-hiker"; accents are folded to ASCII.
"""

import re
import unicodedata


def slugify(text: str) -> str:
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("-")
