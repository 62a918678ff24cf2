"""
Chapter record models.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChapterRecord(BaseModel):
    """A fully transformed chapter document as written by producers.

    Fields beyond ``verses`` and ``metadata`` are kept verbatim.
    """

    model_config = ConfigDict(extra="allow")

    verses: Dict[str, Any] = Field(..., description='Verse payloads keyed by "chapter:verse"')
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("verses")
    @classmethod
    def _require_verses(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value:
            raise ValueError("Chapter data must include at least one verse")
        return value

    @property
    def verse_count(self) -> int:
        return len(self.verses)

    def to_document(self, chapter: int, stored_at: str) -> Dict[str, Any]:
        """Storage form: producer fields plus the chapter id and storage timestamp."""
        document = self.model_dump(exclude_none=True)
        document["chapter"] = chapter
        document["storedAt"] = stored_at
        return document


class PopulateRequest(BaseModel):
    """Body of a bulk populate call; entries are validated one by one later."""

    chapters: Dict[str, Any]
