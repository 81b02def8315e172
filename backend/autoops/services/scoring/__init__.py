# Scoring module - Deterministic severity and impact overlay
from .scoring import (
    SeverityPolicy,
    blast_radius,
    build_report_labels,
    deterministic_impact,
    deterministic_severity,
    final_impact,
    final_severity,
    score_report,
    severity_tier,
    IMPACT_WEIGHTS,
)

__all__ = [
    "SeverityPolicy",
    "blast_radius",
    "build_report_labels",
    "deterministic_impact",
    "deterministic_severity",
    "final_impact",
    "final_severity",
    "score_report",
    "severity_tier",
    "IMPACT_WEIGHTS",
]
