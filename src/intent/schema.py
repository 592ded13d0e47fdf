"""Intent schema (Pydantic models).

This schema is the contract between the untrusted interpreter output and the downstream contact
application. An `Intent` is a closed tagged union over five cases, discriminated by the `intent`
field. Instances are immutable and are either fully valid for their case or never constructed.

Attribute names are snake_case; the wire form uses the camelCase aliases the client expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from src.intent.normalize import normalize_tags


class IntentName(StrEnum):
    """The closed set of intent tags."""

    add_profile = "add_profile"
    edit_profile = "edit_profile"
    schedule_text = "schedule_text"
    schedule_reminder = "schedule_reminder"
    none = "none"


def format_utc(value: datetime) -> str:
    """Render an aware datetime as a UTC instant (`YYYY-MM-DDTHH:MM:SSZ`)."""

    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class _Args(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class _TargetedArgs(_Args):
    """Arguments addressed to exactly one profile, by id or by name."""

    profile_id: str | None = Field(default=None, alias="profileId")
    profile_name: str | None = Field(default=None, alias="profileName")

    @model_validator(mode="before")
    @classmethod
    def prefer_profile_id(cls, data: Any) -> Any:
        """Keep only `profileId` when both target fields are supplied."""

        if not isinstance(data, dict):
            return data

        profile_id = data.get("profileId", data.get("profile_id"))
        if isinstance(profile_id, str) and profile_id.strip():
            data = {k: v for k, v in data.items() if k not in {"profileName", "profile_name"}}
        return data

    @field_validator("profile_id", "profile_name")
    @classmethod
    def target_empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @model_validator(mode="after")
    def validate_target(self) -> _TargetedArgs:
        if self.profile_id is None and self.profile_name is None:
            raise ValueError("profileId or profileName is required")
        return self


class AddProfileArgs(_Args):
    name: str = Field(min_length=1)
    phone: str | None = None
    tags: tuple[str, ...] | None = None
    notes: str | None = None
    relationship_type: str | None = Field(default=None, alias="relationshipType")

    @field_validator("phone", "notes", "relationship_type")
    @classmethod
    def empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        """Lowercase and de-duplicate tags; an empty list is treated as absent."""

        if value is None:
            return None
        return normalize_tags(value) or None


class EditProfileArgs(_TargetedArgs):
    updates: dict[str, str] = Field(min_length=1)


class ScheduleTextArgs(_TargetedArgs):
    when: AwareDatetime
    message: str = Field(min_length=1)

    @field_serializer("when")
    def serialize_when(self, value: datetime) -> str:
        return format_utc(value)


class ScheduleReminderArgs(_TargetedArgs):
    when: AwareDatetime
    reason: str | None = None

    @field_validator("reason")
    @classmethod
    def reason_empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @field_serializer("when")
    def serialize_when(self, value: datetime) -> str:
        return format_utc(value)


class NoneArgs(_Args):
    explanation: str = Field(min_length=1)


class _IntentBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class AddProfileIntent(_IntentBase):
    intent: Literal["add_profile"] = "add_profile"
    args: AddProfileArgs


class EditProfileIntent(_IntentBase):
    intent: Literal["edit_profile"] = "edit_profile"
    args: EditProfileArgs


class ScheduleTextIntent(_IntentBase):
    intent: Literal["schedule_text"] = "schedule_text"
    args: ScheduleTextArgs


class ScheduleReminderIntent(_IntentBase):
    intent: Literal["schedule_reminder"] = "schedule_reminder"
    args: ScheduleReminderArgs


class NoneIntent(_IntentBase):
    intent: Literal["none"] = "none"
    args: NoneArgs


Intent = Annotated[
    AddProfileIntent | EditProfileIntent | ScheduleTextIntent | ScheduleReminderIntent | NoneIntent,
    Field(discriminator="intent"),
]

INTENT_MODELS: dict[IntentName, type[_IntentBase]] = {
    IntentName.add_profile: AddProfileIntent,
    IntentName.edit_profile: EditProfileIntent,
    IntentName.schedule_text: ScheduleTextIntent,
    IntentName.schedule_reminder: ScheduleReminderIntent,
    IntentName.none: NoneIntent,
}


def none_intent(explanation: str) -> NoneIntent:
    """Build the safe fallback intent."""

    return NoneIntent(args=NoneArgs(explanation=explanation))


def intent_to_wire(intent: Intent) -> dict[str, Any]:
    """Render an intent as the JSON object sent to the client (absent fields omitted)."""

    return intent.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class KnownProfile:
    """A profile the client already knows about (id + display name)."""

    id: str
    name: str


@dataclass(frozen=True)
class Context:
    """Request-scoped context used only for date resolution and id checks."""

    now: datetime | None = None
    timezone: str | None = None
    known_profiles: tuple[KnownProfile, ...] = field(default_factory=tuple)

    @property
    def zone(self) -> ZoneInfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None

    @property
    def known_profile_ids(self) -> frozenset[str]:
        return frozenset(p.id for p in self.known_profiles)

    def to_payload(self) -> dict[str, Any]:
        """Render the normalized context as the JSON object shown to the interpreter."""

        payload: dict[str, Any] = {}
        if self.now is not None:
            payload["now"] = self.now.isoformat()
        if self.timezone is not None:
            payload["timezone"] = self.timezone
        if self.known_profiles:
            payload["knownProfiles"] = [{"id": p.id, "name": p.name} for p in self.known_profiles]
        return payload


@dataclass(frozen=True)
class Valid:
    """Validation succeeded; `intent` is fully valid for its case."""

    intent: Intent


@dataclass(frozen=True)
class Invalid:
    """Validation failed with a human-readable reason."""

    reason: str


ValidationOutcome = Valid | Invalid
