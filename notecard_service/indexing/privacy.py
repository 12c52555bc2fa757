"""Exclusion rules and PII redaction applied before a note reaches a provider."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_FRONTMATTER_RE = re.compile(r"^---\n([\s\S]*?)\n---")
_FM_TAG_LIST_RE = re.compile(r"tags:\s*\[(.*?)\]")
_FM_TAG_SINGLE_RE = re.compile(r"tags:\s*(\S+)")
_INLINE_TAG_RE = re.compile(r"(?<![\w&])#([\w\-/]+)")


@dataclass(frozen=True)
class PIIPattern:
    kind: str  # email|phone|id|custom
    pattern: re.Pattern[str]
    replacement: str


DEFAULT_PII_PATTERNS: tuple[PIIPattern, ...] = (
    PIIPattern(
        "email",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "[EMAIL_REDACTED]",
    ),
    # National id numbers first, before the looser phone patterns eat them
    PIIPattern("id", re.compile(r"\b\d{17}[\dXx]\b"), "[ID_REDACTED]"),
    PIIPattern("phone", re.compile(r"\b1[3-9]\d{9}\b"), "[PHONE_REDACTED]"),
    PIIPattern(
        "phone",
        re.compile(r"\+\d{1,3}[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}"),
        "[PHONE_REDACTED]",
    ),
)


def extract_tags(content: str) -> list[str]:
    """Tags from YAML frontmatter (``tags: [a, b]`` or ``tags: a``) and inline ``#tag``."""
    tags: list[str] = []

    fm = _FRONTMATTER_RE.match(content.replace("\r\n", "\n"))
    if fm:
        block = fm.group(1)
        list_m = _FM_TAG_LIST_RE.search(block)
        if list_m:
            tags.extend(t.strip().strip("'\"") for t in list_m.group(1).split(",") if t.strip())
        else:
            single_m = _FM_TAG_SINGLE_RE.search(block)
            if single_m:
                tags.append(single_m.group(1).strip("'\""))

    tags.extend(_INLINE_TAG_RE.findall(content))

    # dedupe, keep first-seen order
    return list(dict.fromkeys(tags))


@dataclass
class PrivacyGuard:
    exclude_directories: tuple[str, ...] = ()
    exclude_tags: tuple[str, ...] = ()
    pii_patterns: list[PIIPattern] = field(default_factory=lambda: list(DEFAULT_PII_PATTERNS))

    def should_exclude(self, path: str, tags: list[str]) -> bool:
        norm = path.replace("\\", "/")
        for d in self.exclude_directories:
            prefix = d.replace("\\", "/").strip("/")
            if prefix and (norm == prefix or norm.startswith(prefix + "/")):
                return True
        return any(t in tags for t in self.exclude_tags)

    def filter_pii(self, content: str, *, external: bool) -> str:
        """Redact PII for external providers; local models see the note as written."""
        if not external:
            return content
        for p in self.pii_patterns:
            content = p.pattern.sub(p.replacement, content)
        return content
