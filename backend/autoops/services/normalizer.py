"""
Normalization of untrusted model output into the canonical IncidentReport.

Every field is routed through one coercion rule with a documented default,
so a malformed field degrades to a safe value instead of failing the
analysis. Only an unparseable payload is an error.
"""
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from autoops.core.errors import MalformedResponseError
from autoops.core.logging import get_logger
from autoops.models.schemas import (
    IncidentReport, ProbableCause, Propagation, PropagationEdge,
    PropagationNode, Service, ServiceStatus
)
from autoops.services.fallback import (
    MAX_PROPAGATION_EDGES, MAX_PROPAGATION_NODES,
    build_fallback_services, build_propagation_from_services
)

logger = get_logger(__name__)

MAX_CAUSES = 5
MAX_RUNBOOK_STEPS = 10
MAX_SERVICE_SIGNALS = 12
MIN_SERVICES = 3
MIN_PROPAGATION_NODES = 2

UNKNOWN_SERVICE = "unknown-service"
DEFAULT_EDGE_LABEL = "depends_on"

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)

_STATUS_VALUES = {status.value for status in ServiceStatus}


# ============================================================================
# Scalar coercions
# ============================================================================

def to_number(value: Any, fallback: float = 0.0) -> float:
    """Coerce to a finite float; NaN, infinities and non-numbers fall back."""
    if isinstance(value, (int, float)):
        raw = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
    else:
        return fallback

    try:
        number = float(raw)
    except (ValueError, OverflowError):
        return fallback
    return number if math.isfinite(number) else fallback


def to_score(value: Any, fallback: int = 0) -> int:
    """Integer in [0, 100], rounded half up."""
    number = to_number(value, fallback)
    return int(min(100, max(0, math.floor(number + 0.5))))


def to_probability(value: Any, fallback: float = 0.0) -> float:
    return min(1.0, max(0.0, to_number(value, fallback)))


def to_utf8(text: str) -> str:
    """Replace lone surrogates so the text always encodes as UTF-8."""
    return text.encode("utf-8", "replace").decode("utf-8")


def to_string(value: Any, fallback: str = "") -> str:
    return to_utf8(value) if isinstance(value, str) else fallback


def _stringify(item: Any) -> str:
    if isinstance(item, str):
        return to_utf8(item)
    if item is None:
        return ""
    if isinstance(item, bool):
        return "true" if item else "false"
    return str(item)


def to_string_list(value: Any, limit: int = 20) -> List[str]:
    """Trimmed, non-empty strings; anything but a list becomes empty."""
    if not isinstance(value, list):
        return []
    items = (_stringify(item).strip() for item in value)
    return [item for item in items if item][:limit]


def to_status(value: Any) -> ServiceStatus:
    """Unknown statuses fail open to degraded rather than healthy."""
    if isinstance(value, str) and value in _STATUS_VALUES:
        return ServiceStatus(value)
    return ServiceStatus.DEGRADED


# ============================================================================
# Field rules
# ============================================================================

@dataclass(frozen=True)
class FieldRule:
    """How one report field is read from raw model JSON."""
    name: str
    coerce: Callable[[Any, "FieldRule", Dict[str, Any]], Any]
    default: Any = None
    limit: Optional[int] = None


def _rule_string(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> str:
    return to_string(value, rule.default)


def _rule_score(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> int:
    return to_score(value, rule.default)


def _rule_non_negative(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> float:
    return max(0.0, to_number(value, rule.default))


def _rule_probability(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> float:
    return to_probability(value, rule.default)


def _rule_string_list(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> List[str]:
    return to_string_list(value, rule.limit)


def _rule_causes(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> List[ProbableCause]:
    causes = [
        ProbableCause(
            name=to_string(item.get("name"), rule.default),
            probability=to_probability(item.get("probability")),
            reasoning=to_string(item.get("reasoning")),
            recommended_action=to_string(item.get("recommended_action")),
        )
        for item in (value if isinstance(value, list) else [])
        if isinstance(item, dict)
    ]
    causes = [c for c in causes if c.name.strip()]
    # sorted() is stable, so equal probabilities keep model order
    causes = sorted(causes, key=lambda c: c.probability, reverse=True)
    return causes[:rule.limit]


def _rule_services(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> List[Service]:
    services: List[Service] = []
    seen = set()

    for item in value if isinstance(value, list) else []:
        if not isinstance(item, dict):
            continue
        name = to_string(item.get("name")).strip() or rule.default
        if name in seen:
            continue
        seen.add(name)
        services.append(Service(
            name=name,
            status=to_status(item.get("status")),
            signals=to_string_list(item.get("signals"), MAX_SERVICE_SIGNALS),
            suspected_components=to_string_list(
                item.get("suspected_components"), MAX_SERVICE_SIGNALS),
        ))

    if len(services) < rule.limit:
        logger.info(
            f"Model supplied {len(services)} usable service(s), using fallback topology")
        return build_fallback_services(fields["incident_type"])

    return services


def _read_nodes(raw_nodes: List[Any]) -> List[PropagationNode]:
    nodes: List[PropagationNode] = []
    seen = set()
    for item in raw_nodes:
        if not isinstance(item, dict):
            continue
        node_id = to_string(item.get("id")).strip()
        label = to_string(item.get("label")).strip()
        if not node_id or not label or node_id in seen:
            continue
        seen.add(node_id)
        nodes.append(PropagationNode(id=node_id, label=label))
    return nodes[:MAX_PROPAGATION_NODES]


def _read_edges(raw_edges: List[Any]) -> List[PropagationEdge]:
    edges: List[PropagationEdge] = []
    for item in raw_edges:
        if not isinstance(item, dict):
            continue
        source = to_string(item.get("from")).strip()
        target = to_string(item.get("to")).strip()
        if not source or not target:
            continue
        label = to_string(item.get("label")).strip() or DEFAULT_EDGE_LABEL
        edges.append(PropagationEdge(from_=source, to=target, label=label))
    return edges[:MAX_PROPAGATION_EDGES]


def _rule_propagation(value: Any, rule: FieldRule, fields: Dict[str, Any]) -> Propagation:
    if (
        isinstance(value, dict)
        and isinstance(value.get("nodes"), list)
        and isinstance(value.get("edges"), list)
    ):
        nodes = _read_nodes(value["nodes"])
        if len(nodes) >= rule.limit:
            return Propagation(nodes=nodes, edges=_read_edges(value["edges"]))

    return build_propagation_from_services(fields["services"])


# Applied in order: services needs incident_type, propagation needs services.
REPORT_FIELD_RULES: List[FieldRule] = [
    FieldRule("incident_type", _rule_string, default="Unknown Incident"),
    FieldRule("executive_summary", _rule_string, default=""),
    FieldRule("severity_score", _rule_score, default=0),
    FieldRule("business_impact_score", _rule_score, default=0),
    FieldRule("estimated_recovery_time_minutes", _rule_non_negative, default=0.0),
    FieldRule("confidence", _rule_probability, default=0.0),
    FieldRule("probable_causes", _rule_causes, default="Unknown Cause", limit=MAX_CAUSES),
    FieldRule("recommended_runbook_steps", _rule_string_list, limit=MAX_RUNBOOK_STEPS),
    FieldRule("services", _rule_services, default=UNKNOWN_SERVICE, limit=MIN_SERVICES),
    FieldRule("propagation", _rule_propagation, limit=MIN_PROPAGATION_NODES),
]


def normalize_report(raw: Any) -> IncidentReport:
    """
    Build a valid IncidentReport from any decoded JSON value.

    Never raises for missing or wrong-typed fields; a non-object payload
    yields an all-defaults report with the fallback topology.
    """
    source: Dict[str, Any] = raw if isinstance(raw, dict) else {}
    fields: Dict[str, Any] = {}

    for rule in REPORT_FIELD_RULES:
        fields[rule.name] = rule.coerce(source.get(rule.name), rule, fields)

    return IncidentReport(**fields)


def extract_json(text: str) -> Any:
    """
    Parse the JSON object embedded in raw model text.

    Strips code fences and parses from the first '{' to the last '}'.
    Raises MalformedResponseError when nothing parseable remains.
    """
    cleaned = CODE_FENCE_PATTERN.sub("", text or "").strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    candidate = cleaned[start:end + 1] if start != -1 and end > start else cleaned

    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.warning(f"Failed to parse model response as JSON: {cleaned[:200]}")
        raise MalformedResponseError("AI returned invalid JSON") from e
