import copy

import pytest


SAMPLE_PAYLOAD = {
    "incident_type": "Database Connectivity Failure",
    "executive_summary": "Primary database rejected connections; checkout degraded.",
    "severity_score": 40,
    "business_impact_score": 60,
    "estimated_recovery_time_minutes": 45,
    "confidence": 0.8,
    "probable_causes": [
        {
            "name": "Connection pool exhaustion",
            "probability": 0.55,
            "reasoning": "Pool timeout errors across api-gateway",
            "recommended_action": "Raise pool limits and recycle idle connections",
        },
        {
            "name": "Failed failover",
            "probability": 0.85,
            "reasoning": "Replica promotion did not complete",
            "recommended_action": "Promote replica manually",
        },
    ],
    "recommended_runbook_steps": [
        "Check primary-db health",
        "Fail over to replica",
    ],
    "services": [
        {
            "name": "api-gateway",
            "status": "degraded",
            "signals": ["5xx spike"],
            "suspected_components": ["db-client"],
        },
        {
            "name": "primary-db",
            "status": "down",
            "signals": ["connection refused"],
            "suspected_components": ["replication"],
        },
        {
            "name": "cache",
            "status": "healthy",
            "signals": [],
            "suspected_components": [],
        },
    ],
    "propagation": {
        "nodes": [
            {"id": "api-gateway", "label": "API Gateway"},
            {"id": "primary-db", "label": "Primary DB"},
            {"id": "cache", "label": "Cache"},
        ],
        "edges": [
            {"from": "api-gateway", "to": "primary-db", "label": "depends_on"},
            {"from": "api-gateway", "to": "cache", "label": "uses_cache"},
        ],
    },
}


@pytest.fixture
def sample_payload():
    """A well-formed model payload; copied so tests may mutate it."""
    return copy.deepcopy(SAMPLE_PAYLOAD)
