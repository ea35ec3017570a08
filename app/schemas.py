"""Pydantic models for classifier output and API response bodies.

Explicit schemas keep untrusted model output out of the resolution engine:
anything that does not validate here is treated as an unknown intent.
"""
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

from app.domain.months import normalize_month


IntentLabel = Literal["save", "update", "delete", "list_all", "list_month", "search", "help", "unknown"]


class ClassifierResponse(BaseModel):
    """Shape the classifier tool must return."""
    model_config = ConfigDict(extra="ignore")

    intent: IntentLabel
    name: Optional[str] = None
    day: Optional[int] = None
    month: Optional[str] = None
    query: Optional[str] = None
    needs_clarification: bool = False
    clarification_question: Optional[str] = None

    @field_validator("name", "query", "clarification_question", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("day", mode="before")
    @classmethod
    def day_in_range(cls, v):
        if v is None or v == "":
            return None
        try:
            day = int(v)
        except (TypeError, ValueError):
            return None
        return day if 1 <= day <= 31 else None

    @field_validator("month", mode="before")
    @classmethod
    def canonical_month(cls, v):
        return normalize_month(v)

    @field_validator("needs_clarification", mode="before")
    @classmethod
    def null_is_false(cls, v):
        return bool(v) if v is not None else False


# JSON schema handed to the model as the classifier tool's input_schema
CLASSIFIER_TOOL_SCHEMA = {
    "type": "object",
    "properties": {
        "intent": {
            "type": "string",
            "enum": ["save", "update", "delete", "list_all", "list_month", "search", "help", "unknown"],
        },
        "name": {"type": ["string", "null"], "description": "Person's name, if any"},
        "day": {"type": ["integer", "null"], "description": "Day of month 1-31"},
        "month": {"type": ["string", "null"], "description": "Month name, abbreviation or number"},
        "query": {"type": ["string", "null"], "description": "Search text for a search intent"},
        "needs_clarification": {"type": "boolean"},
        "clarification_question": {"type": ["string", "null"]},
    },
    "required": ["intent"],
}


class BirthdayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    day: int = Field(ge=1, le=31)
    month: str


class BirthdayListResponse(BaseModel):
    owner_id: str
    count: int
    birthdays: List[BirthdayOut] = Field(default_factory=list)
