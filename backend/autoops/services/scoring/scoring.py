"""
Deterministic scoring for incident reports.
Overlays topology-derived severity and impact on the model-asserted scores.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Dict, Iterable, List

from autoops.models.schemas import (
    IncidentReport,
    Propagation,
    ReportLabels,
    Service,
    ServiceStatus,
)


class SeverityPolicy(str, Enum):
    """Weighting used to derive severity from service health."""
    ADDITIVE = "additive"
    THRESHOLD = "threshold"


# Weights for the impact blend
IMPACT_WEIGHTS: Dict[str, float] = {
    "ai": 0.5,
    "propagation": 0.3,
    "blast_radius": 0.2,
}

# Per-service increments for the additive policy
ADDITIVE_WEIGHTS: Dict[ServiceStatus, int] = {
    ServiceStatus.DOWN: 35,
    ServiceStatus.DEGRADED: 15,
    ServiceStatus.HEALTHY: 0,
}

NODE_WEIGHT = 5
EDGE_WEIGHT = 8


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values, unlike round()."""
    return int(math.floor(value + 0.5))


def _count(services: Iterable[Service], status: ServiceStatus) -> int:
    return sum(1 for s in services if s.status == status)


def deterministic_severity(
    services: List[Service],
    policy: SeverityPolicy = SeverityPolicy.ADDITIVE,
) -> int:
    """
    Severity floor derived from service health.

    - additive: +35 per down service, +15 per degraded service
    - threshold: +70 for two or more down, +45 for one down, +10 per degraded
    """
    down = _count(services, ServiceStatus.DOWN)
    degraded = _count(services, ServiceStatus.DEGRADED)

    if policy == SeverityPolicy.THRESHOLD:
        score = 0
        if down >= 2:
            score += 70
        elif down == 1:
            score += 45
        score += degraded * 10
    else:
        score = sum(ADDITIVE_WEIGHTS[s.status] for s in services)

    return int(clamp(score, 0, 100))


def blast_radius(services: List[Service]) -> int:
    """Share of services affected, down counting fully and degraded by half."""
    total = len(services)
    if total == 0:
        return 0

    down = _count(services, ServiceStatus.DOWN)
    degraded = _count(services, ServiceStatus.DEGRADED)

    radius = (down + degraded * 0.5) / total
    return int(clamp(round_half_up(radius * 100), 0, 100))


def deterministic_impact(propagation: Propagation) -> int:
    node_count = len(propagation.nodes)
    edge_count = len(propagation.edges)
    return int(clamp(node_count * NODE_WEIGHT + edge_count * EDGE_WEIGHT, 0, 100))


def final_severity(ai_severity: int, det_severity: int) -> int:
    """The model may raise severity but never push it below the floor."""
    return int(clamp(max(ai_severity, det_severity), 0, 100))


def final_impact(ai_impact: int, det_impact: int, radius: int) -> int:
    w = IMPACT_WEIGHTS
    blended = (
        w["ai"] * ai_impact
        + w["propagation"] * det_impact
        + w["blast_radius"] * radius
    )
    return int(clamp(round_half_up(blended), 0, 100))


def score_report(
    report: IncidentReport,
    policy: SeverityPolicy = SeverityPolicy.ADDITIVE,
) -> IncidentReport:
    """
    Return a copy of a normalized report with final severity and impact.

    The report's own scores are taken as the AI-asserted values.
    """
    severity = final_severity(
        report.severity_score,
        deterministic_severity(report.services, policy),
    )
    impact = final_impact(
        report.business_impact_score,
        deterministic_impact(report.propagation),
        blast_radius(report.services),
    )
    return report.model_copy(
        update={"severity_score": severity, "business_impact_score": impact}
    )


def severity_tier(severity_score: int) -> str:
    """Map severity to the tier shown on incident documents."""
    if severity_score >= 80:
        return "P1"
    if severity_score >= 60:
        return "P2"
    return "P3"


def build_report_labels(report: IncidentReport) -> ReportLabels:
    """Pre-render the labels the document renderer prints verbatim."""
    radius = blast_radius(report.services)
    affected = len(report.services) - _count(report.services, ServiceStatus.HEALTHY)
    return ReportLabels(
        severity_tier=severity_tier(report.severity_score),
        impact_text=f"{report.business_impact_score}/100 business impact",
        blast_radius_text=f"{radius}% ({affected} of {len(report.services)} services affected)",
        confidence_percent=round_half_up(report.confidence * 100),
    )
