from typing import List
from autoops.models.schemas import (
    Propagation, PropagationEdge, PropagationNode, Service, ServiceStatus
)

FALLBACK_SIGNAL = "Fallback service map"

# Keywords in the incident type that escalate the fallback topology
OUTAGE_KEYWORDS = ("outage", "down", "critical")

MAX_PROPAGATION_NODES = 30
MAX_PROPAGATION_EDGES = 60


def build_fallback_services(incident_type: str) -> List[Service]:
    """
    Build the fixed three-service topology used when the model supplied
    too few services.

    Statuses default to degraded/degraded/healthy and escalate to
    down/down/degraded when the incident type reads like an outage.
    """
    statuses = [ServiceStatus.DEGRADED, ServiceStatus.DEGRADED, ServiceStatus.HEALTHY]

    it = incident_type.lower()
    if any(kw in it for kw in OUTAGE_KEYWORDS):
        statuses = [ServiceStatus.DOWN, ServiceStatus.DOWN, ServiceStatus.DEGRADED]

    return [
        Service(
            name="api-gateway",
            status=statuses[0],
            signals=[FALLBACK_SIGNAL],
            suspected_components=["request-routing", "auth", "rate-limiter"],
        ),
        Service(
            name="primary-db",
            status=statuses[1],
            signals=[FALLBACK_SIGNAL],
            suspected_components=["connections", "replication", "locks"],
        ),
        Service(
            name="cache",
            status=statuses[2],
            signals=[FALLBACK_SIGNAL],
            suspected_components=["evictions", "latency", "memory"],
        ),
    ]


def build_propagation_from_services(services: List[Service]) -> Propagation:
    """Star graph from the first service to the next two."""
    nodes = [
        PropagationNode(id=s.name, label=s.name)
        for s in services[:MAX_PROPAGATION_NODES]
    ]

    edges: List[PropagationEdge] = []
    if len(services) >= 3:
        edges = [
            PropagationEdge(from_=services[0].name, to=services[1].name, label="depends_on"),
            PropagationEdge(from_=services[0].name, to=services[2].name, label="uses_cache"),
        ]

    return Propagation(nodes=nodes, edges=edges)
