"""Outreach aggregation — merges saved contacts, social matches and engagement
into one prioritised, deduplicated action list.

The derivation is a pure function of its inputs plus "now": ``build_items``
and ``build_sections`` hold no state and are re-run in full on every refresh.
``OutreachAggregator`` is the thin async shell that fetches the three sources
(each through its own SyncedQuery, so each can fall back to cache
independently) and hands the results to the pure functions.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, TypeVar

from recruit_sync.api.client import ApiClient
from recruit_sync.api.types import (
    DmStatus,
    EmailConnectionStatus,
    SavedContact,
    SocialFollowers,
    SocialMatch,
)
from recruit_sync.outreach.types import (
    OutreachItem,
    OutreachSection,
    OutreachStatus,
    OutreachThresholds,
    OutreachView,
    SuggestedAction,
)
from recruit_sync.sync.context import SyncContext
from recruit_sync.sync.query import QueryResult, SyncedQuery

logger = logging.getLogger(__name__)

P = TypeVar("P")

_SECONDS_PER_DAY = 86_400

SAVED_CONTACTS_KEY = "saved_contacts"
SOCIAL_FOLLOWERS_KEY = "social_followers"
EMAIL_STATUS_KEY = "email_status"

# (title, subtitle, empty message) per section, in display order.
_SECTION_COPY: dict[OutreachStatus, tuple[str, str, str]] = {
    OutreachStatus.ENGAGED: (
        "Engaged",
        "Coaches showing interest right now",
        "No engaged coaches yet. Send some emails!",
    ),
    OutreachStatus.WAITING: (
        "Waiting for Reply",
        "Sent, awaiting response",
        "No pending outreach",
    ),
    OutreachStatus.RESPONDED: (
        "Responded",
        "Coaches who replied",
        "No responses yet",
    ),
    OutreachStatus.NEED_CONTACT: (
        "Need to Contact",
        "Saved coaches to reach out to",
        "Save coaches from the directory to get started",
    ),
}


class OutreachUnavailableError(Exception):
    """Raised when every outreach source failed and none had cached data."""


# ── Derivation (pure) ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Signals:
    """Raw engagement inputs for one contact, before derivation."""

    is_following: bool
    email_sent_at: datetime | None
    email_opened_at: datetime | None
    email_open_count: int
    email_replied_at: datetime | None
    social_discovered_at: datetime | None
    social_dm_sent_at: datetime | None
    social_replied_at: datetime | None


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days between two instants, ignoring direction."""
    return int(abs((later - earlier).total_seconds()) // _SECONDS_PER_DAY)


def _followed_within(signals: _Signals, now: datetime, days: int) -> bool:
    if not signals.is_following or signals.social_discovered_at is None:
        return False
    return days_between(signals.social_discovered_at, now) <= days


def compute_status(signals: _Signals, now: datetime, thresholds: OutreachThresholds) -> OutreachStatus:
    """First match wins: responded → engaged → waiting → need_contact."""
    if signals.email_replied_at or signals.social_replied_at:
        return OutreachStatus.RESPONDED
    if signals.email_opened_at:
        return OutreachStatus.ENGAGED
    if _followed_within(signals, now, thresholds.engaged_follow_days):
        return OutreachStatus.ENGAGED
    if signals.email_sent_at or signals.social_dm_sent_at:
        return OutreachStatus.WAITING
    return OutreachStatus.NEED_CONTACT


def is_hot_lead(signals: _Signals, now: datetime, thresholds: OutreachThresholds) -> bool:
    """Repeat opens, a very recent open, or a brand-new follow."""
    if signals.email_open_count >= thresholds.hot_open_count:
        return True
    if signals.email_opened_at is not None:
        if now - signals.email_opened_at <= timedelta(hours=thresholds.hot_open_hours):
            return True
    return _followed_within(signals, now, thresholds.hot_follow_days)


def suggest_action(status: OutreachStatus, has_email: bool, has_social: bool) -> SuggestedAction:
    if status is OutreachStatus.RESPONDED:
        return SuggestedAction.VIEW_REPLY
    if status is OutreachStatus.ENGAGED:
        return SuggestedAction.THANK_YOU
    if status is OutreachStatus.WAITING:
        return SuggestedAction.FOLLOW_UP
    if has_email:
        return SuggestedAction.SEND_EMAIL
    if has_social:
        return SuggestedAction.SEND_DM
    return SuggestedAction.SEND_EMAIL


def _latest(moments: Iterable[datetime | None]) -> datetime | None:
    present = [m for m in moments if m is not None]
    return max(present) if present else None


def _match_dm_sent_at(match: SocialMatch) -> datetime | None:
    # The follower scan carries no DM timestamp; discovery time stands in.
    if match.dm_status in (DmStatus.DM_SENT, DmStatus.FOLLOW_UP_SENT):
        return match.discovered_at
    return None


def _match_replied_at(match: SocialMatch) -> datetime | None:
    if match.dm_status is DmStatus.REPLIED:
        return match.discovered_at
    return None


def _derive_item(
    *,
    item_id: str,
    saved: SavedContact | None,
    match: SocialMatch | None,
    social_connected: bool,
    signals: _Signals,
    now: datetime,
    thresholds: OutreachThresholds,
) -> OutreachItem:
    contact = saved.contact if saved is not None else match.contact  # type: ignore[union-attr]
    has_email = bool(contact.email)
    has_social = signals.is_following or (bool(contact.social_handle) and social_connected)

    status = compute_status(signals, now, thresholds)
    outreach_at = signals.email_sent_at or signals.social_dm_sent_at
    return OutreachItem(
        id=item_id,
        contact=contact,
        saved_contact_id=saved.id if saved is not None else None,
        social_match_id=match.id if match is not None else None,
        has_email=has_email,
        has_social=has_social,
        is_following=signals.is_following,
        email_sent_at=signals.email_sent_at,
        email_opened_at=signals.email_opened_at,
        email_open_count=signals.email_open_count,
        email_replied_at=signals.email_replied_at,
        social_discovered_at=signals.social_discovered_at,
        social_dm_sent_at=signals.social_dm_sent_at,
        social_replied_at=signals.social_replied_at,
        status=status,
        is_hot=is_hot_lead(signals, now, thresholds),
        last_activity_at=_latest(
            [
                signals.email_opened_at,
                signals.email_replied_at,
                signals.social_discovered_at,
                signals.social_replied_at,
            ]
        ),
        days_since_contact=days_between(outreach_at, now) if outreach_at else None,
        suggested_action=suggest_action(status, has_email, has_social),
    )


def build_items(
    saved_contacts: list[SavedContact],
    social: SocialFollowers,
    now: datetime,
    thresholds: OutreachThresholds = OutreachThresholds(),
) -> list[OutreachItem]:
    """Merge both sources into one item per external contact id.

    Saved contacts come first, in source order; followers who are not saved
    follow as their own items.  When a contact is in both sources the
    discovery time comes from the social match, falling back to the saved
    record's engagement; DM-sent and replied times come from the engagement,
    falling back to what the match's DM status implies.
    """
    matches: dict[str, SocialMatch] = {}
    for match in social.matches:
        matches.setdefault(match.contact.id, match)

    items: dict[str, OutreachItem] = {}

    for saved in saved_contacts:
        contact_id = saved.contact.id
        if contact_id in items:
            continue
        match = matches.get(contact_id)
        engagement = saved.engagement
        signals = _Signals(
            is_following=match is not None,
            email_sent_at=engagement.last_email_sent if engagement else None,
            email_opened_at=engagement.last_email_opened if engagement else None,
            email_open_count=engagement.email_open_count if engagement else 0,
            email_replied_at=engagement.last_email_replied if engagement else None,
            social_discovered_at=(
                (match.discovered_at if match else None)
                or (engagement.social_discovered_at if engagement else None)
            ),
            social_dm_sent_at=(
                (engagement.last_dm_at if engagement else None)
                or (_match_dm_sent_at(match) if match else None)
            ),
            social_replied_at=(
                (engagement.social_responded_at if engagement else None)
                or (_match_replied_at(match) if match else None)
            ),
        )
        items[contact_id] = _derive_item(
            item_id=saved.id,
            saved=saved,
            match=match,
            social_connected=social.connected,
            signals=signals,
            now=now,
            thresholds=thresholds,
        )

    for contact_id, match in matches.items():
        if contact_id in items:
            continue
        signals = _Signals(
            is_following=True,
            email_sent_at=None,
            email_opened_at=None,
            email_open_count=0,
            email_replied_at=None,
            social_discovered_at=match.discovered_at,
            social_dm_sent_at=_match_dm_sent_at(match),
            social_replied_at=_match_replied_at(match),
        )
        items[contact_id] = _derive_item(
            item_id=f"social-{match.id}",
            saved=None,
            match=match,
            social_connected=social.connected,
            signals=signals,
            now=now,
            thresholds=thresholds,
        )

    return list(items.values())


def _epoch(moment: datetime | None) -> float:
    return moment.timestamp() if moment is not None else 0.0


def _sort_section(status: OutreachStatus, items: list[OutreachItem]) -> list[OutreachItem]:
    if status is OutreachStatus.ENGAGED:
        # Hot leads first, then most recent activity.
        return sorted(items, key=lambda i: (not i.is_hot, -_epoch(i.last_activity_at)))
    if status is OutreachStatus.WAITING:
        # Longest-waiting first; it needs the follow-up soonest.
        return sorted(items, key=lambda i: (i.outreach_at is None, _epoch(i.outreach_at)))
    if status is OutreachStatus.RESPONDED:
        return sorted(items, key=lambda i: (i.replied_at is None, -_epoch(i.replied_at)))
    return sorted(items, key=lambda i: (-i.channel_count, i.contact.name.casefold()))


def build_sections(items: list[OutreachItem]) -> list[OutreachSection]:
    """Group items by status and order each group (all sorts are stable)."""
    sections = []
    for status, (title, subtitle, empty_message) in _SECTION_COPY.items():
        members = [item for item in items if item.status is status]
        sections.append(
            OutreachSection(
                key=status,
                title=title,
                subtitle=subtitle,
                empty_message=empty_message,
                items=_sort_section(status, members),
            )
        )
    return sections


def aggregate(
    saved_contacts: list[SavedContact],
    social: SocialFollowers,
    email_status: EmailConnectionStatus,
    now: datetime,
    thresholds: OutreachThresholds = OutreachThresholds(),
    *,
    is_stale: bool = False,
    failed_sources: tuple[str, ...] = (),
) -> OutreachView:
    """Full pure pipeline: inputs plus now → renderable view."""
    items = build_items(saved_contacts, social, now, thresholds)
    return OutreachView(
        sections=build_sections(items),
        social_connected=social.connected,
        email_connected=email_status.has_active_connection,
        refreshed_at=now,
        is_stale=is_stale,
        failed_sources=failed_sources,
    )


# ── Fan-out shell ──────────────────────────────────────────────────────────────


def parse_saved_contacts(data: Any) -> list[SavedContact]:
    """Parse the saved-contacts payload, skipping malformed records."""
    if not isinstance(data, list):
        raise ValueError(f"expected a list of saved contacts, got {type(data).__name__}")
    parsed: list[SavedContact] = []
    for record in data:
        try:
            parsed.append(SavedContact.from_dict(record))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed saved contact %.200r: %s", record, exc)
    return parsed


class OutreachAggregator:
    """Fetches the three outreach sources concurrently and aggregates them.

    A failing source contributes nothing (it is logged and listed in
    ``OutreachView.failed_sources``); only when all three fail with nothing
    cached does ``refresh()`` raise OutreachUnavailableError.

    Usage::

        aggregator = OutreachAggregator(api, context)
        view = await aggregator.refresh()
    """

    def __init__(
        self,
        api: ApiClient,
        context: SyncContext,
        thresholds: OutreachThresholds = OutreachThresholds(),
        stale_time: timedelta = timedelta(minutes=5),
    ) -> None:
        self._context = context
        self._thresholds = thresholds
        self._saved = SyncedQuery(SAVED_CONTACTS_KEY, api.get_saved_contacts, context, stale_time)
        self._social = SyncedQuery(SOCIAL_FOLLOWERS_KEY, api.get_social_followers, context, stale_time)
        self._email = SyncedQuery(EMAIL_STATUS_KEY, api.get_email_status, context, stale_time)
        self.view: OutreachView | None = None

    async def refresh(self) -> OutreachView:
        queries = (self._saved, self._social, self._email)
        outcomes = await asyncio.gather(*(q.fetch() for q in queries), return_exceptions=True)

        payloads: dict[str, Any] = {}
        failed: list[str] = []
        is_stale = False
        for query, outcome in zip(queries, outcomes):
            data = self._settle(query.key, outcome)
            if data is None:
                failed.append(query.key)
                continue
            payloads[query.key] = data
            is_stale = is_stale or outcome.is_stale  # type: ignore[union-attr]

        if len(failed) == len(queries):
            raise OutreachUnavailableError("Failed to load outreach data: every source failed")

        saved = self._parse(SAVED_CONTACTS_KEY, payloads, parse_saved_contacts, [], failed)
        social = self._parse(SOCIAL_FOLLOWERS_KEY, payloads, SocialFollowers.from_dict, SocialFollowers(), failed)
        email = self._parse(
            EMAIL_STATUS_KEY, payloads, EmailConnectionStatus.from_dict, EmailConnectionStatus(), failed
        )

        self.view = aggregate(
            saved,
            social,
            email,
            self._context.now(),
            self._thresholds,
            is_stale=is_stale,
            failed_sources=tuple(failed),
        )
        logger.info(
            "Outreach refreshed: %s%s",
            ", ".join(f"{s.key.value}={len(s.items)}" for s in self.view.sections),
            f" (failed: {', '.join(failed)})" if failed else "",
        )
        return self.view

    @staticmethod
    def _settle(key: str, outcome: QueryResult[Any] | BaseException) -> Any | None:
        if isinstance(outcome, BaseException):
            logger.warning("Outreach source %s raised: %s", key, outcome)
            return None
        if outcome.data is None:
            logger.warning("Outreach source %s unavailable: %s", key, outcome.error)
            return None
        return outcome.data

    @staticmethod
    def _parse(
        key: str,
        payloads: dict[str, Any],
        parser: Callable[[Any], P],
        empty: P,
        failed: list[str],
    ) -> P:
        if key not in payloads:
            return empty
        try:
            return parser(payloads[key])
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Outreach source %s returned an unreadable payload: %s", key, exc)
            failed.append(key)
            return empty
