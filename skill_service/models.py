"""Pydantic schemas for the Box Skills event, skill cards and API responses."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictInt

from skill_service.types import CardType, InvocationStatus, UsageUnit


def _id_to_str(v: Any) -> Any:
    # Box sends ids as numbers or strings depending on the event
    return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


BoxId = Annotated[str, BeforeValidator(_id_to_str)]

# -- Inbound event ------------------------------------------------------------


class SkillRef(BaseModel):
    id: BoxId


class SourceRef(BaseModel):
    id: BoxId
    name: str
    size: int = Field(..., ge=0)


class AccessToken(BaseModel):
    access_token: str = Field(..., min_length=1)


class TokenPair(BaseModel):
    read: AccessToken
    write: AccessToken


class SkillEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: BoxId | None = None
    skill: SkillRef
    source: SourceRef
    token: TokenPair


# -- Skill cards --------------------------------------------------------------


class CardTitleRef(BaseModel):
    code: str
    message: str


class SkillServiceRef(BaseModel):
    type: str = "service"
    id: str


class InvocationRef(BaseModel):
    type: str = "skill_invocation"
    id: str | None


class MetadataCard(BaseModel):
    created_at: str
    type: str = "skill_card"
    skill: SkillServiceRef
    skill_card_type: CardType
    skill_card_title: CardTitleRef
    invocation: InvocationRef
    status: dict[str, Any] = Field(default_factory=dict)
    entries: list[dict[str, Any]] | None = None
    duration: float | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Usage(BaseModel):
    unit: UsageUnit
    value: StrictInt


class FileRef(BaseModel):
    type: str = "file"
    id: str


class InvocationMetadata(BaseModel):
    cards: list[dict[str, Any]]


class SkillInvocationBody(BaseModel):
    status: InvocationStatus
    file: FileRef
    metadata: InvocationMetadata
    usage: Usage | None = None


# -- Responses ----------------------------------------------------------------


class SkillResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    error: str | None = None
