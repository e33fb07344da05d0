"""Types for the unified outreach view."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from recruit_sync.api.types import Contact


class OutreachStatus(str, Enum):
    """Where a contact sits in the outreach pipeline, in precedence order."""

    RESPONDED = "responded"
    ENGAGED = "engaged"
    WAITING = "waiting"
    NEED_CONTACT = "need_contact"


class SuggestedAction(str, Enum):
    SEND_EMAIL = "send_email"
    SEND_DM = "send_dm"
    FOLLOW_UP = "follow_up"
    VIEW_REPLY = "view_reply"
    THANK_YOU = "thank_you"


@dataclass(frozen=True)
class OutreachThresholds:
    """Recency windows for status and hot-lead derivation.

    The engaged-follow and hot-follow windows are deliberately separate
    settings; nothing ties them to one "recency" value.
    """

    engaged_follow_days: int = 7
    hot_follow_days: int = 3
    hot_open_hours: float = 24.0
    hot_open_count: int = 2


@dataclass(frozen=True)
class OutreachItem:
    """One coaching contact, merged across saved contacts and social matches.

    Everything below the engagement timestamps is derived; the item is rebuilt
    from its inputs on every aggregation pass.
    """

    id: str
    contact: Contact
    saved_contact_id: str | None
    social_match_id: str | None

    has_email: bool
    has_social: bool
    is_following: bool

    email_sent_at: datetime | None
    email_opened_at: datetime | None
    email_open_count: int
    email_replied_at: datetime | None
    social_discovered_at: datetime | None
    social_dm_sent_at: datetime | None
    social_replied_at: datetime | None

    status: OutreachStatus
    is_hot: bool
    last_activity_at: datetime | None
    days_since_contact: int | None
    suggested_action: SuggestedAction

    @property
    def contact_id(self) -> str:
        return self.contact.id

    @property
    def channel_count(self) -> int:
        return int(self.has_email) + int(self.has_social or self.is_following)

    @property
    def outreach_at(self) -> datetime | None:
        """When the first-choice channel was last used to reach out."""
        return self.email_sent_at or self.social_dm_sent_at

    @property
    def replied_at(self) -> datetime | None:
        return self.email_replied_at or self.social_replied_at


@dataclass(frozen=True)
class OutreachSection:
    key: OutreachStatus
    title: str
    subtitle: str
    empty_message: str
    items: list[OutreachItem] = field(default_factory=list)


@dataclass(frozen=True)
class OutreachView:
    """A complete aggregation result, ready to render."""

    sections: list[OutreachSection]
    social_connected: bool
    email_connected: bool
    refreshed_at: datetime
    is_stale: bool = False
    failed_sources: tuple[str, ...] = ()

    def section(self, key: OutreachStatus) -> OutreachSection:
        for section in self.sections:
            if section.key == key:
                return section
        raise KeyError(key)

    @property
    def engaged_count(self) -> int:
        return len(self.section(OutreachStatus.ENGAGED).items)

    @property
    def hot_count(self) -> int:
        return sum(1 for item in self.section(OutreachStatus.ENGAGED).items if item.is_hot)
