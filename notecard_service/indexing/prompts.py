from __future__ import annotations

NOTECARD_PROMPT_TEMPLATE = """You are a career-planning assistant. Extract structured, career-relevant \
information from one of the user's notes and return it as a single NoteCard JSON object.

# Input
- Note path: {note_path}
- Content hash: {content_hash}
- Today's date: {current_date}
- Note content:
```
{note_content}
```

# Output
Return one JSON object with exactly these fields:
- summary: a short summary of the note (1-3 sentences)
- type: one of "project", "course", "reflection", "other"
- time_span: the period the note covers, or "" if unknown
- tech_stack: list of {{"name": str, "context": str, "level": str}} where level is one of
  "beginner" (heard of it, followed a tutorial), "familiar" (used it in small exercises),
  "proficient" (used it in real projects), "expert" (deep knowledge, taught or designed with it).
  Keep skill names as written in the note.
- topics: list of topics or domains the note touches
- preferences: {{"likes": [...], "dislikes": [...], "traits": [...]}}
- evidence: short quotes from the note that support the extracted skills
- last_updated: when the note content was last updated, as inferred from the note, or ""

Only use information present in the note. Return JSON only, with no Markdown formatting.
"""

RETRY_FEEDBACK_TEMPLATE = """

# Previous attempt
Your previous response was rejected: {error}
Return a corrected JSON object that satisfies every field requirement above."""


def build_note_prompt(
    *, note_path: str, note_content: str, content_hash: str, current_date: str
) -> str:
    return NOTECARD_PROMPT_TEMPLATE.format(
        note_path=note_path,
        note_content=note_content,
        content_hash=content_hash,
        current_date=current_date,
    )


def with_retry_feedback(prompt: str, error: str) -> str:
    return prompt + RETRY_FEEDBACK_TEMPLATE.format(error=error)
