"""Entry models for the lore catalog."""

import math
import re
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator

from .relations import ExtractedRelation


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_tags(value) -> list[str]:
    """Coerce a tag list or comma string into unique, trimmed tags.

    Order is preserved; uniqueness is case-insensitive and the first spelling wins.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    tags: list[str] = []
    seen: set[str] = set()
    for tag in value:
        tag = str(tag).strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


def year_from_date(value: str | None) -> int | None:
    """Pull the leading (possibly negative) year out of an ISO-ish date string."""
    if not value:
        return None
    match = re.match(r"^\s*(-?\d{1,6})", value)
    return int(match.group(1)) if match else None


class DatePrecision(str, Enum):
    """How precisely an entry's date is known."""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"
    DECADE = "decade"
    CENTURY = "century"
    VAGUE = "vague"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, raw: str | None, date_description: str | None = None) -> "DatePrecision":
        """Map a raw precision to one of the known values.

        A known value is kept. An empty value becomes VAGUE when there is a free-text
        date description and UNKNOWN otherwise. Anything unrecognised is VAGUE.
        """
        if isinstance(raw, cls):
            return raw
        trimmed = (raw or "").strip().lower()
        if not trimmed:
            return cls.VAGUE if date_description and date_description.strip() else cls.UNKNOWN
        trimmed = _PRECISION_ALIASES.get(trimmed, trimmed)
        try:
            return cls(trimmed)
        except ValueError:
            return cls.VAGUE


_PRECISION_ALIASES = {
    "dia": "day",
    "mes": "month",
    "ano": "year",
    "decada": "decade",
    "seculo": "century",
    "vago": "vague",
    "indefinido": "unknown",
}


class TemporalLayer(str, Enum):
    """Narrative layer a dated entry belongs to."""

    MAIN_LINE = "main_line"
    FLASHBACK = "flashback"
    FLASHFORWARD = "flashforward"
    ALTERNATE = "alternate"
    MYTH = "myth"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().lower().replace(" ", "_")
            key = {"linha_principal": "main_line", "mito": "myth"}.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        return cls.MAIN_LINE


class TemporalFields(BaseModel):
    """Date fields that always travel together when entries are merged."""

    year: int | None = None
    start_date: str | None = None
    end_date: str | None = None
    date_precision: DatePrecision = DatePrecision.UNKNOWN
    temporal_layer: TemporalLayer = TemporalLayer.MAIN_LINE
    date_description: str | None = None


_TEMPORAL_FIELDS = tuple(TemporalFields.model_fields)


class _TemporalMixin(BaseModel):
    year: int | None = Field(default=None, validation_alias=AliasChoices("year", "ano_diegese"))
    start_date: str | None = Field(default=None, validation_alias=AliasChoices("start_date", "data_inicio"))
    end_date: str | None = Field(default=None, validation_alias=AliasChoices("end_date", "data_fim"))
    date_precision: DatePrecision = Field(
        default=DatePrecision.UNKNOWN,
        validation_alias=AliasChoices("date_precision", "granularidade_data"),
    )
    temporal_layer: TemporalLayer = Field(
        default=TemporalLayer.MAIN_LINE,
        validation_alias=AliasChoices("temporal_layer", "camada_temporal"),
    )
    date_description: str | None = Field(
        default=None,
        validation_alias=AliasChoices("date_description", "descricao_data"),
    )

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value):
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError("year must be a finite number")
            return int(value)
        return year_from_date(str(value))

    @field_validator("start_date", "end_date", "date_description", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("temporal_layer", mode="before")
    @classmethod
    def _coerce_layer(cls, value):
        return TemporalLayer(value) if value else TemporalLayer.MAIN_LINE

    @field_validator("date_precision", mode="before")
    @classmethod
    def _coerce_precision(cls, value):
        if isinstance(value, DatePrecision):
            return value
        if not isinstance(value, str) or not value.strip():
            return DatePrecision.UNKNOWN
        return DatePrecision.normalize(value)

    @model_validator(mode="after")
    def _settle_dates(self):
        if self.date_precision is DatePrecision.UNKNOWN and (self.date_description or self.start_date):
            self.date_precision = DatePrecision.VAGUE
        if self.year is None and self.start_date:
            self.year = year_from_date(self.start_date)
        return self

    @property
    def temporal(self) -> TemporalFields:
        """The date fields as one unit."""
        return TemporalFields(**{name: getattr(self, name) for name in _TEMPORAL_FIELDS})

    @property
    def has_start_date(self) -> bool:
        return bool(self.start_date)


class ExtractedEntry(_TemporalMixin):
    """An entry as returned by the extraction model.

    This is the schema enforced at the extraction boundary: records that fail
    validation are dropped by the extractor instead of flowing downstream.
    Both English field names and the original Portuguese wire names are accepted.
    """

    type: str = Field(validation_alias=AliasChoices("type", "tipo"))
    title: str = Field(validation_alias=AliasChoices("title", "titulo"))
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "resumo"))
    body: str = Field(default="", validation_alias=AliasChoices("body", "content", "conteudo"))
    tags: list[str] = Field(default_factory=list)
    appears_in: str = Field(default="", validation_alias=AliasChoices("appears_in", "aparece_em"))
    image_url: str | None = Field(default=None, validation_alias=AliasChoices("image_url", "imagem_url"))
    code: str | None = Field(default=None, validation_alias=AliasChoices("code", "codigo"))
    relations: list[ExtractedRelation] = Field(
        default_factory=list,
        validation_alias=AliasChoices("relations", "relacoes"),
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_meta_relations(cls, data):
        # The extraction contract nests relations under meta.relacoes
        if isinstance(data, dict) and isinstance(data.get("meta"), dict):
            meta = data["meta"]
            nested = meta.get("relations", meta.get("relacoes"))
            if nested and not data.get("relations") and not data.get("relacoes"):
                data = {**data, "relations": nested}
        return data

    @field_validator("type", "title")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("summary", "body", "appears_in", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else str(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value):
        return normalize_tags(value)

    @field_validator("relations", mode="before")
    @classmethod
    def _drop_bad_relations(cls, value):
        if not isinstance(value, list):
            return []
        relations = []
        for item in value:
            try:
                relations.append(ExtractedRelation.model_validate(item))
            except ValidationError:
                continue
        return relations

    @property
    def identity(self) -> tuple[str, str]:
        """De-duplication key: (type, title) lower-cased and trimmed."""
        return identity_key(self.type, self.title)


def identity_key(entry_type: str, title: str) -> tuple[str, str]:
    return (entry_type.strip().lower(), title.strip().lower())


class Entry(_TemporalMixin):
    """A stored lore entry."""

    id: str = Field(default_factory=_new_id)
    type: str
    title: str
    summary: str = ""
    body: str = ""
    tags: list[str] = Field(default_factory=list)
    appears_in: str = ""
    image_url: str | None = None
    container_id: str | None = None
    owner_id: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value):
        return normalize_tags(value)

    @property
    def identity(self) -> tuple[str, str]:
        return identity_key(self.type, self.title)


class MergedRecord(_TemporalMixin):
    """The human-selected result of reconciling two duplicate entries."""

    type: str = Field(validation_alias=AliasChoices("type", "tipo"))
    title: str = Field(validation_alias=AliasChoices("title", "titulo"))
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "resumo"))
    body: str = Field(default="", validation_alias=AliasChoices("body", "conteudo"))
    tags: list[str] = Field(default_factory=list)
    appears_in: str = Field(default="", validation_alias=AliasChoices("appears_in", "aparece_em"))

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value):
        return normalize_tags(value)


class Container(BaseModel):
    """A world: the top-level grouping entries belong to."""

    id: str = Field(default_factory=_new_id)
    name: str = ""
    prefix: str | None = None
    order: int = 0
    has_episodes: bool = False
    hierarchy_id: str | None = None  # universe
    owner_id: str | None = None
    description: str = ""


class CatalogCode(BaseModel):
    """A human-readable locator owned by one entry."""

    entry_id: str
    code: str
    label: str = ""
    description: str = ""


class DuplicateCandidate(BaseModel):
    """Two stored entries that probably describe the same thing. Never persisted."""

    id_a: str
    id_b: str
    title_a: str = ""
    title_b: str = ""
    similarity: float
