"""Base model and enum for Tesla owner API responses.

Every response model inherits from :class:`TeslaBaseModel` which
provides:

* frozen instances with unknown keys ignored,
* a ``model_validator(mode="before")`` that drops ``null`` values so the
  field default is used instead,
* a ``raw`` dict that captures the original payload.

Open-ended string states inherit from :class:`TeslaStrEnum` which adds
an ``OTHER`` member and a ``_missing_`` hook that returns ``OTHER`` for
any value without a mapped member.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TeslaStrEnum(str, enum.Enum):
    """Base for string state enums.

    Every subclass **must** define ``OTHER``.  Lookups are
    case-insensitive; unmapped values resolve to ``OTHER`` instead of
    raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> TeslaStrEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        other: TeslaStrEnum = cls.OTHER  # type: ignore[attr-defined]
        return other

    def __str__(self) -> str:
        return str(self.value)


class TeslaBaseModel(BaseModel):
    """Base for owner API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        """Strip ``null`` values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Keep an explicit raw= from keyword construction.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
