"""
Identity linking: typed, undirected links between accounts that likely share an owner.

Rules (no ML):
  - shared attribute (fingerprint, device id, exact IP, /24 subnet, ASN):
    group senders by attribute value, emit every pair in each group
  - VPN temporal overlap: two VPN-flagged events within the time window
  - temporal proximity: two events from different senders within the time window
  - behavioural similarity: both senders have >= 2 transactions, all below the
    reporting threshold, with near-identical average amounts

Linking is over the transaction sender only. A receiving account is never
linked through the counterparty field; it joins a cluster only if it also
sends in the same snapshot.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from fraudlink.analysis_engine.models import IdentityLink, LinkType
from fraudlink.fraudlink_logging import get_logger
from fraudlink.ingestion.normalizer import TransactionEvent

logger = get_logger(__name__)


@dataclass
class LinkingConfig:
    """
    Link strengths and thresholds. Times in seconds, amounts in account currency.
    """

    fingerprint_strength: float = 0.9
    device_id_strength: float = 0.6
    ip_strength: float = 0.5
    subnet_strength: float = 0.4
    asn_strength: float = 0.35
    vpn_strength: float = 0.2
    time_strength: float = 0.8
    behavior_strength: float = 0.5

    # Temporal proximity and VPN overlap share one window (3 minutes).
    time_window_sec: float = 180.0

    # Behavioural similarity: all amounts strictly below the threshold,
    # min(avg)/max(avg) strictly above the ratio.
    reporting_threshold: float = 10_000.0
    behavior_min_tx_count: int = 2
    behavior_similarity_ratio: float = 0.85

    fingerprint_falls_back_to_device_id: bool = False


class LinkSet:
    """
    Deduplicating link accumulator keyed by (sorted pair, link_type).

    Re-adding an existing (pair, type) is a no-op, so repeated rule matches
    are idempotent rather than additive. Self-links are ignored.
    """

    def __init__(self) -> None:
        self._links: dict[tuple[str, str, LinkType], IdentityLink] = {}

    def add(
        self,
        a: str,
        b: str,
        link_type: LinkType,
        strength: float,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        if a == b:
            return False
        lo, hi = (a, b) if a < b else (b, a)
        key = (lo, hi, link_type)
        if key in self._links:
            return False
        self._links[key] = IdentityLink(lo, hi, link_type, strength, metadata or {})
        return True

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, key: object) -> bool:
        return key in self._links

    def links(self) -> list[IdentityLink]:
        """Links in insertion order."""
        return list(self._links.values())


def _group_by_attribute(
    events: Iterable[TransactionEvent],
    attr: Callable[[TransactionEvent], str | None],
) -> dict[str, list[str]]:
    """attribute value -> distinct senders in first-seen order; None values skipped."""
    groups: dict[str, dict[str, None]] = defaultdict(dict)
    for ev in events:
        value = attr(ev)
        if value is None:
            continue
        groups[value][ev.account_id] = None
    return {value: list(accounts) for value, accounts in groups.items()}


def _link_shared_attribute(
    link_set: LinkSet,
    events: list[TransactionEvent],
    attr: Callable[[TransactionEvent], str | None],
    link_type: LinkType,
    strength: float,
    metadata_key: str,
) -> None:
    for value, accounts in _group_by_attribute(events, attr).items():
        if len(accounts) < 2:
            continue
        for i in range(len(accounts)):
            for j in range(i + 1, len(accounts)):
                link_set.add(accounts[i], accounts[j], link_type, strength, {metadata_key: value})


def _link_within_window(
    link_set: LinkSet,
    events: list[TransactionEvent],
    window_sec: float,
    link_type: LinkType,
    strength: float,
    extra_metadata: dict[str, Any],
) -> None:
    """
    Two-pointer sweep over time-sorted events: pair each event with every
    later event no more than window_sec after it.
    """
    timed = sorted(
        (ev for ev in events if ev.timestamp is not None),
        key=lambda ev: ev.ts,
    )
    stamps = [ev.ts for ev in timed]
    for i, left in enumerate(timed):
        for j in range(i + 1, len(timed)):
            diff = stamps[j] - stamps[i]
            right = timed[j]
            if diff > window_sec:
                break
            if right.account_id == left.account_id:
                continue
            metadata = {"time_diff_sec": round(diff, 3)}
            metadata.update(extra_metadata)
            link_set.add(left.account_id, right.account_id, link_type, strength, metadata)


def _link_behavior(
    link_set: LinkSet,
    events: list[TransactionEvent],
    config: LinkingConfig,
) -> None:
    amounts_by_account: dict[str, list[float]] = defaultdict(list)
    for ev in events:
        amounts_by_account[ev.account_id].append(ev.amount)

    candidates: list[tuple[str, float]] = []
    for account, amounts in amounts_by_account.items():
        if len(amounts) < config.behavior_min_tx_count:
            continue
        if not all(a < config.reporting_threshold for a in amounts):
            continue
        candidates.append((account, sum(amounts) / len(amounts)))

    for i in range(len(candidates)):
        acc_a, avg_a = candidates[i]
        for j in range(i + 1, len(candidates)):
            acc_b, avg_b = candidates[j]
            hi = max(avg_a, avg_b)
            if hi <= 0:
                continue
            ratio = min(avg_a, avg_b) / hi
            if ratio > config.behavior_similarity_ratio:
                link_set.add(
                    acc_a,
                    acc_b,
                    LinkType.BEHAVIOR,
                    config.behavior_strength,
                    {
                        "avg_amount_a": round(avg_a, 2),
                        "avg_amount_b": round(avg_b, 2),
                        "similarity": round(ratio, 4),
                    },
                )


def detect_identity_links(
    events: list[TransactionEvent],
    config: LinkingConfig | None = None,
) -> list[IdentityLink]:
    """
    Apply all linking rules to the snapshot and return the deduplicated link set.

    Each (unordered pair, link_type) appears at most once. Output order is
    rule order, then discovery order within a rule, so identical snapshots
    give identical output.
    """
    config = config or LinkingConfig()
    link_set = LinkSet()

    _link_shared_attribute(
        link_set, events, lambda ev: ev.device_fingerprint_id,
        LinkType.FINGERPRINT, config.fingerprint_strength, "fingerprint",
    )
    _link_shared_attribute(
        link_set, events, lambda ev: ev.device_id,
        LinkType.DEVICE_ID, config.device_id_strength, "device_id",
    )
    _link_shared_attribute(
        link_set, events, lambda ev: ev.ip_address,
        LinkType.IP, config.ip_strength, "ip_address",
    )
    _link_shared_attribute(
        link_set, events, lambda ev: ev.ip_subnet,
        LinkType.SUBNET, config.subnet_strength, "subnet",
    )
    _link_shared_attribute(
        link_set, events, lambda ev: ev.asn,
        LinkType.ASN, config.asn_strength, "asn",
    )
    _link_within_window(
        link_set,
        [ev for ev in events if ev.vpn_flag],
        config.time_window_sec,
        LinkType.VPN,
        config.vpn_strength,
        {"vpn_overlap": True},
    )
    _link_within_window(
        link_set,
        events,
        config.time_window_sec,
        LinkType.TIME,
        config.time_strength,
        {"window_sec": config.time_window_sec},
    )
    _link_behavior(link_set, events, config)

    links = link_set.links()
    by_type: dict[str, int] = defaultdict(int)
    for link in links:
        by_type[link.link_type.value] += 1
    logger.info(
        "identity_links_detected",
        event_count=len(events),
        link_count=len(links),
        by_type=dict(by_type),
    )
    return links
