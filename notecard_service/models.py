"""Pydantic schemas for NoteCards and the model output they are built from."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

NoteType = Literal["project", "course", "reflection", "other"]
SkillLevel = Literal["beginner", "familiar", "proficient", "expert"]
CardStatus = Literal["draft", "confirmed"]


# -- Model output -------------------------------------------------------------


class TechItem(BaseModel):
    name: str  # original skill name, not normalized
    context: str
    level: SkillLevel


class Preferences(BaseModel):
    likes: list[str] = Field(default_factory=list)
    dislikes: list[str] = Field(default_factory=list)
    traits: list[str] = Field(default_factory=list)


class NoteCardExtraction(BaseModel):
    """Fields the provider is asked to produce for one note.

    Engine-owned fields (path, hash, timestamps, schema version) are not
    trusted from the provider and are set when the card is assembled.
    """

    model_config = ConfigDict(extra="ignore")

    summary: str = Field(..., min_length=1)
    type: NoteType
    time_span: str
    tech_stack: list[TechItem]
    topics: list[str]
    preferences: Preferences
    evidence: list[str]
    last_updated: str = ""


# -- Stored record ------------------------------------------------------------


class NoteCard(BaseModel):
    """Structured record extracted from a single note.

    ``hash`` is the content hash of the source note at extraction time and
    drives change detection. ``deleted`` is a tombstone: cards are never
    physically removed by the indexer.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: StrictInt
    note_path: StrictStr = Field(..., min_length=1)
    hash: StrictStr = Field(..., min_length=1)

    summary: StrictStr
    type: NoteType
    time_span: StrictStr

    tech_stack: list[TechItem]
    topics: list[str]
    preferences: Preferences
    evidence: list[str]

    last_updated: StrictStr
    detected_date: StrictStr

    status: CardStatus = "draft"
    deleted: StrictBool = False


class RecordStats(BaseModel):
    total_cards: int
    draft_cards: int
    confirmed_cards: int
    deleted_cards: int
