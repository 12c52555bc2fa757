from __future__ import annotations

import hashlib


def normalize_text(text: str) -> str:
    if not text:
        return ""
    # Line endings differ across platforms; the digest must not
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\x00", "")
    # Collapse very long runs of blank lines
    while "\n\n\n\n" in text:
        text = text.replace("\n\n\n\n", "\n\n\n")
    return text.strip()


def content_hash(text: str) -> str:
    """Change-detection fingerprint of a document's normalized text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()
