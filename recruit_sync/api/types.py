"""Typed views of the backend's JSON responses.

The backend speaks camelCase JSON; these dataclasses are the snake_case shapes
the rest of the package works with.  Parsing is lenient: unknown keys are
ignored, missing optional keys default, and an unparseable timestamp reads as
None rather than failing the whole record.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Ignoring unparseable timestamp %r", value)
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _as_mapping(data: Any, what: str) -> dict[str, Any]:
    """Raise TypeError unless ``data`` is a JSON object."""
    if not isinstance(data, dict):
        raise TypeError(f"expected {what} to be an object, got {type(data).__name__}")
    return data


# ── Contacts ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Contact:
    """A college coach as returned by the directory.

    ``id`` is the external contact identifier used to dedupe across sources.
    """

    id: str
    name: str
    title: str = ""
    school: str = ""
    conference: str | None = None
    division: str | None = None
    email: str | None = None
    social_handle: str | None = None
    phone: str | None = None
    image_url: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Contact":
        data = _as_mapping(data, "contact")
        return Contact(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            title=str(data.get("title") or ""),
            school=str(data.get("school") or ""),
            conference=data.get("conference"),
            division=data.get("division"),
            email=data.get("email") or None,
            social_handle=data.get("twitter") or None,
            phone=data.get("phone") or None,
            image_url=data.get("imageUrl") or None,
        )


@dataclass(frozen=True)
class ContactEngagement:
    """Email and social engagement embedded in a saved-contact record."""

    last_email_sent: datetime | None = None
    last_email_opened: datetime | None = None
    last_email_replied: datetime | None = None
    email_open_count: int = 0
    email_click_count: int = 0
    social_discovered_at: datetime | None = None
    social_responded_at: datetime | None = None
    last_dm_at: datetime | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ContactEngagement":
        data = _as_mapping(data, "engagement")
        return ContactEngagement(
            last_email_sent=parse_timestamp(data.get("lastEmailSent")),
            last_email_opened=parse_timestamp(data.get("lastEmailOpened")),
            last_email_replied=parse_timestamp(data.get("lastEmailReplied")),
            email_open_count=int(data.get("emailOpenCount") or 0),
            email_click_count=int(data.get("emailClickCount") or 0),
            social_discovered_at=parse_timestamp(data.get("twitterDiscoveredAt")),
            social_responded_at=parse_timestamp(data.get("twitterRespondedAt")),
            last_dm_at=parse_timestamp(data.get("lastDmAt")),
        )


@dataclass(frozen=True)
class SavedContact:
    """A contact the athlete saved to their pipeline."""

    id: str
    contact: Contact
    outreach_status: str = "NOT_CONTACTED"
    notes: str | None = None
    engagement: ContactEngagement | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SavedContact":
        data = _as_mapping(data, "saved contact")
        raw_engagement = data.get("engagement")
        return SavedContact(
            id=str(data["id"]),
            contact=Contact.from_dict(data["collegeCoach"]),
            outreach_status=str(data.get("outreachStatus") or "NOT_CONTACTED"),
            notes=data.get("notes"),
            engagement=ContactEngagement.from_dict(raw_engagement) if raw_engagement else None,
        )


# ── Social platform ────────────────────────────────────────────────────────────


class DmStatus(str, Enum):
    NOT_CONTACTED = "not_contacted"
    DM_SENT = "dm_sent"
    FOLLOW_UP_SENT = "follow_up_sent"
    REPLIED = "replied"


@dataclass(frozen=True)
class SocialMatch:
    """A contact discovered following the athlete on the social platform."""

    id: str
    contact: Contact
    discovered_at: datetime | None
    dm_status: DmStatus = DmStatus.NOT_CONTACTED
    match_type: str = ""

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SocialMatch":
        data = _as_mapping(data, "social match")
        try:
            dm_status = DmStatus(data.get("dmStatus") or DmStatus.NOT_CONTACTED.value)
        except ValueError:
            dm_status = DmStatus.NOT_CONTACTED
        return SocialMatch(
            id=str(data["id"]),
            contact=Contact.from_dict(data["coach"]),
            discovered_at=parse_timestamp(data.get("discoveredAt")),
            dm_status=dm_status,
            match_type=str(data.get("matchType") or ""),
        )


@dataclass(frozen=True)
class SocialFollowers:
    """Result of the follower scan."""

    connected: bool = False
    username: str | None = None
    matches: list[SocialMatch] = field(default_factory=list)

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> "SocialFollowers":
        if not data:
            return SocialFollowers()
        data = _as_mapping(data, "follower scan")
        return SocialFollowers(
            connected=bool(data.get("connected", False)),
            username=data.get("username"),
            matches=[SocialMatch.from_dict(m) for m in data.get("matches") or []],
        )


# ── Messaging connection ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class EmailConnectionStatus:
    connected: bool = False
    active_email: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> "EmailConnectionStatus":
        if not data:
            return EmailConnectionStatus()
        data = _as_mapping(data, "email status")
        active = data.get("activeConnection") or None
        if active is not None:
            active = _as_mapping(active, "active connection")
        return EmailConnectionStatus(
            connected=bool(data.get("connected", False)),
            active_email=active.get("email") if active else None,
        )

    @property
    def has_active_connection(self) -> bool:
        return self.active_email is not None


# ── Chat ───────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Message:
    id: str
    role: str  # "user" | "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "role": self.role, "content": self.content}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Message":
        return Message(
            id=str(data.get("id", "")),
            role=str(data.get("role", "user")),
            content=str(data.get("content", "")),
        )


@dataclass(frozen=True)
class Conversation:
    id: str
    title: str | None = None
    messages: list[Message] = field(default_factory=list)
    updated_at: datetime | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Conversation":
        return Conversation(
            id=str(data["id"]),
            title=data.get("title"),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            updated_at=parse_timestamp(data.get("updatedAt")),
        )
