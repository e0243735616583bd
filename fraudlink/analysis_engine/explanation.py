"""
Natural-language rationale for a scored cluster.

Lists the member accounts, the linking evidence present, the risk-level
implication, and the non-zero metrics; model flags are appended last.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from fraudlink.analysis_engine.models import ClusterMetrics, IdentityLink, LinkType, RiskLevel

# Emitted in this order when the link type is present.
LINK_TYPE_PHRASES: dict[LinkType, str] = {
    LinkType.FINGERPRINT: "shared browser fingerprints",
    LinkType.DEVICE_ID: "shared device identifiers",
    LinkType.IP: "used the same IP address",
    LinkType.SUBNET: "operated on the same network subnet",
    LinkType.ASN: "connected via the same ASN/ISP",
    LinkType.VPN: "both used VPN/proxy with time overlap",
    LinkType.TIME: "transacted within a {minutes}-minute window",
    LinkType.BEHAVIOR: "exhibited similar small-value transaction patterns",
}

RISK_LEVEL_PHRASES: dict[RiskLevel, str] = {
    RiskLevel.HIGH: "This indicates a high probability of coordinated fraudulent activity.",
    RiskLevel.MEDIUM: "This pattern warrants closer investigation for potential coordination.",
}

METRIC_LABELS: dict[str, str] = {
    "fingerprint_reuse_score": "Fingerprint Reuse",
    "device_id_reuse_score": "Device Reuse",
    "ip_subnet_asn_reuse_score": "Network Reuse",
    "vpn_presence_score": "VPN Presence",
    "time_sync_score": "Time Sync",
    "graph_density_score": "Graph Density",
    "burst_window_score": "Burst Windows",
    "synchronized_activity_score": "Synchronized Activity",
    "funnel_score": "Funnel",
    "circular_flow_score": "Circular Flow",
    "pass_through_score": "Pass-Through",
    "automation_score": "Automation",
    "physical_consistency_score": "Location Conflict",
    "biometric_session_score": "Biometric/Session Anomaly",
}

_NAME_PREFIX_LEN = 8


def _format_minutes(window_sec: float) -> str:
    minutes = window_sec / 60.0
    return str(int(minutes)) if minutes.is_integer() else f"{minutes:g}"


def link_type_phrase(link_type: LinkType, time_window_sec: float = 180.0) -> str:
    return LINK_TYPE_PHRASES[link_type].format(minutes=_format_minutes(time_window_sec))


def format_metrics(metrics: ClusterMetrics) -> str:
    """'Label: NN%' for each non-zero metric, joined by ' | '."""
    parts = [
        f"{METRIC_LABELS.get(name, name)}: {value * 100:.0f}%"
        for name, value in metrics.scores().items()
        if value > 0
    ]
    return " | ".join(parts)


def generate_explanation(
    account_ids: Sequence[str],
    links: Sequence[IdentityLink],
    metrics: ClusterMetrics,
    risk_level: RiskLevel,
    account_names: Mapping[str, str] | None = None,
    model_flags: Sequence[str] = (),
    *,
    time_window_sec: float = 180.0,
) -> str:
    names = account_names or {}
    labels = [names.get(acc) or acc[:_NAME_PREFIX_LEN] for acc in account_ids]
    parts = [f"Accounts {', '.join(labels)} are linked."]

    present = {link.link_type for link in links}
    reasons = [
        link_type_phrase(link_type, time_window_sec)
        for link_type in LINK_TYPE_PHRASES
        if link_type in present
    ]
    if reasons:
        parts.append(f"These accounts {', '.join(reasons)}.")

    implication = RISK_LEVEL_PHRASES.get(risk_level)
    if implication:
        parts.append(implication)

    metric_text = format_metrics(metrics)
    if metric_text:
        parts.append(f"Metrics: {metric_text}.")

    parts.extend(flag for flag in model_flags if flag)
    return " ".join(parts)
