"""Relation models for the lore catalog."""

import unicodedata
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _fold(value: str) -> str:
    """Lower-case, strip accents and separators for enum lookup."""
    normalized = unicodedata.normalize("NFD", value)
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return normalized.strip().lower().replace(" ", "_").replace("-", "_")


class RelationType(str, Enum):
    """Types of directed relations between entries."""

    # Family/social
    PARENT_OF = "parent_of"
    CHILD_OF = "child_of"
    SIBLING_OF = "sibling_of"
    MARRIED_TO = "married_to"
    FRIEND_OF = "friend_of"
    ENEMY_OF = "enemy_of"

    # Work and membership
    WORKS_AT = "works_at"
    EMPLOYS = "employs"
    MEMBER_OF = "member_of"

    # Places
    LOCATED_IN = "located_in"
    CONTAINS = "contains"

    # Objects and events
    USED_BY = "used_by"
    OWNS = "owns"
    PARTICIPATED_IN = "participated_in"
    CAUSED = "caused"

    RELATED_TO = "related_to"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = _fold(value)
            key = _ALIASES.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        return cls.RELATED_TO


# Relation names used by Portuguese-language extraction prompts
_ALIASES = {
    "pai_de": "parent_of",
    "mae_de": "parent_of",
    "filho_de": "child_of",
    "filha_de": "child_of",
    "irmao_de": "sibling_of",
    "irma_de": "sibling_of",
    "casado_com": "married_to",
    "amigo_de": "friend_of",
    "inimigo_de": "enemy_of",
    "trabalha_em": "works_at",
    "emprega": "employs",
    "membro_de": "member_of",
    "localizado_em": "located_in",
    "contem": "contains",
    "usado_por": "used_by",
    "possui": "owns",
    "participou_de": "participated_in",
    "causou": "caused",
    "relacionado_a": "related_to",
}


class ExtractedRelation(BaseModel):
    """A relation as returned by the extraction model, keyed by target title."""

    type: RelationType = Field(
        default=RelationType.RELATED_TO,
        validation_alias=AliasChoices("type", "tipo"),
    )
    target_title: str = Field(validation_alias=AliasChoices("target_title", "target", "alvo_titulo"))

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return RelationType(value) if value else RelationType.RELATED_TO

    @field_validator("target_title")
    @classmethod
    def _require_target(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("relation target is blank")
        return value.strip()

    @property
    def key(self) -> tuple[str, str]:
        return (self.type.value, self.target_title.lower())


class Relation(BaseModel):
    """A stored directed edge between two entries."""

    source_id: str
    target_id: str
    type: RelationType = RelationType.RELATED_TO
    description: str = Field(default="")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return RelationType(value) if value else RelationType.RELATED_TO
