"""What each screen can still do while offline, and the banner it shows."""

from dataclasses import dataclass
from enum import Enum


class Screen(str, Enum):
    DASHBOARD = "dashboard"
    COACHES = "coaches"
    PIPELINE = "pipeline"
    INSIGHT = "insight"
    PROFILE = "profile"
    CAMPAIGNS = "campaigns"
    OUTREACH = "outreach"


@dataclass(frozen=True)
class OfflineBehavior:
    partial: bool
    banner: str
    cached: frozenset[str] = frozenset()
    hidden: frozenset[str] = frozenset()
    disabled: frozenset[str] = frozenset()


OFFLINE_BEHAVIOR: dict[Screen, OfflineBehavior] = {
    Screen.DASHBOARD: OfflineBehavior(
        partial=True,
        cached=frozenset({"stats", "pipeline_chart", "recommended_coaches"}),
        hidden=frozenset({"live_intel"}),
        disabled=frozenset({"refresh"}),
        banner="You're offline. Showing cached data.",
    ),
    Screen.COACHES: OfflineBehavior(
        partial=True,
        cached=frozenset({"last_search_results"}),
        disabled=frozenset({"search", "save", "filter"}),
        banner="Search disabled while offline.",
    ),
    Screen.PIPELINE: OfflineBehavior(
        partial=True,
        cached=frozenset({"saved_coaches"}),
        disabled=frozenset({"send_actions", "status_update"}),
        banner="Actions will send when connected.",
    ),
    Screen.INSIGHT: OfflineBehavior(
        partial=False,
        banner="Insight needs an internet connection.",
    ),
    Screen.PROFILE: OfflineBehavior(
        partial=True,
        cached=frozenset({"profile_data"}),
        disabled=frozenset({"share", "copy", "save"}),
        banner="Changes will sync when connected.",
    ),
    Screen.CAMPAIGNS: OfflineBehavior(
        partial=True,
        cached=frozenset({"campaign_list"}),
        disabled=frozenset({"create", "send"}),
        banner="Campaign creation disabled while offline.",
    ),
    Screen.OUTREACH: OfflineBehavior(
        partial=True,
        cached=frozenset({"social_matches", "campaign_list"}),
        disabled=frozenset({"send_dm", "create_campaign", "scan"}),
        banner="Outreach actions disabled while offline.",
    ),
}


def is_feature_available_offline(screen: Screen | str, feature: str) -> bool:
    """A feature works offline only if it is served from cache.

    Hidden and disabled features are never available, whatever else is listed.
    """
    behavior = OFFLINE_BEHAVIOR[Screen(screen)]
    if feature in behavior.hidden or feature in behavior.disabled:
        return False
    return feature in behavior.cached


def get_offline_banner(screen: Screen | str) -> str:
    return OFFLINE_BEHAVIOR[Screen(screen)].banner


def has_partial_offline_support(screen: Screen | str) -> bool:
    return OFFLINE_BEHAVIOR[Screen(screen)].partial
