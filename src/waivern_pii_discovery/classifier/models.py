"""Models for probabilistic classifier input and output."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from waivern_pii_discovery.taxonomy import normalise_pii_type


class LLMClassificationResponse(BaseModel):
    """Schema the LLM reply must satisfy after JSON extraction.

    ``type`` is normalised onto the closed taxonomy; a type outside it fails
    validation like any other malformed reply. Extra keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = "LLM classification"

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Normalise the type tag and reject types outside the taxonomy."""
        normalised = normalise_pii_type(v)
        if normalised is None:
            raise ValueError(f"Unknown PII type: {v!r}")
        return normalised

    @field_validator("reason", mode="before")
    @classmethod
    def default_empty_reason(cls, v: object) -> object:
        """Treat a null or blank reason as absent."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "LLM classification"
        return v


class ClassifierResult(BaseModel):
    """Validated ``{type, confidence, reason}`` triple."""

    model_config = ConfigDict(frozen=True)

    type: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    used_fallback: bool = False
