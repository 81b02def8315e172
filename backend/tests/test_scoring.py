import pytest

from autoops.models.schemas import (
    IncidentReport, Propagation, PropagationEdge, PropagationNode,
    Service, ServiceStatus
)
from autoops.services.scoring import (
    SeverityPolicy, blast_radius, build_report_labels, deterministic_impact,
    deterministic_severity, final_impact, final_severity, score_report,
    severity_tier
)

DOWN = ServiceStatus.DOWN
DEGRADED = ServiceStatus.DEGRADED
HEALTHY = ServiceStatus.HEALTHY


def _services(*statuses):
    return [Service(name=f"svc-{i}", status=s) for i, s in enumerate(statuses)]


def _propagation(node_count, edge_count):
    nodes = [PropagationNode(id=f"n{i}", label=f"n{i}") for i in range(node_count)]
    edges = [PropagationEdge(from_="n0", to="n1") for _ in range(edge_count)]
    return Propagation(nodes=nodes, edges=edges)


class TestDeterministicSeverity:
    def test_additive_weights(self):
        assert deterministic_severity(_services(DOWN, DEGRADED, HEALTHY)) == 50
        assert deterministic_severity(_services(DEGRADED, DEGRADED)) == 30

    def test_additive_clamps_to_100(self):
        assert deterministic_severity(_services(DOWN, DOWN, DOWN, DOWN)) == 100

    def test_threshold_weights(self):
        policy = SeverityPolicy.THRESHOLD
        assert deterministic_severity(_services(DOWN, DOWN, HEALTHY), policy) == 70
        assert deterministic_severity(_services(DOWN, DEGRADED, DEGRADED), policy) == 65
        assert deterministic_severity(_services(DEGRADED, HEALTHY), policy) == 10

    def test_no_services(self):
        assert deterministic_severity([]) == 0
        assert deterministic_severity([], SeverityPolicy.THRESHOLD) == 0

    @pytest.mark.parametrize("policy", list(SeverityPolicy))
    def test_outage_floor_beats_zero_ai_severity(self, policy):
        services = _services(DOWN, DOWN, HEALTHY)
        floor = deterministic_severity(services, policy)

        assert floor == 70
        assert final_severity(0, floor) >= 70


class TestBlastRadius:
    def test_down_counts_fully_degraded_by_half(self):
        assert blast_radius(_services(DOWN, DEGRADED, HEALTHY)) == 50

    def test_rounds_half_up(self):
        # 0.5 / 4 = 12.5%
        assert blast_radius(_services(DEGRADED, HEALTHY, HEALTHY, HEALTHY)) == 13

    def test_empty_is_zero(self):
        assert blast_radius([]) == 0


class TestImpact:
    def test_three_nodes_two_edges(self):
        assert deterministic_impact(_propagation(3, 2)) == 31

    def test_clamps_to_100(self):
        assert deterministic_impact(_propagation(30, 60)) == 100

    def test_weighted_blend(self):
        assert final_impact(60, 31, 50) == 49
        assert final_impact(100, 100, 100) == 100
        assert final_impact(0, 0, 0) == 0

    def test_blend_rounds_half_up(self):
        assert final_impact(1, 0, 0) == 1


class TestScoreReport:
    def test_overlays_scores_without_mutating_input(self):
        report = IncidentReport(
            severity_score=0,
            business_impact_score=0,
            services=_services(DOWN, DOWN, HEALTHY),
            propagation=_propagation(3, 2),
        )

        scored = score_report(report)

        assert scored.severity_score == 70
        # 0.3 * 31 + 0.2 * 67 = 22.7
        assert scored.business_impact_score == 23
        assert report.severity_score == 0
        assert report.business_impact_score == 0

    def test_ai_may_raise_severity(self):
        report = IncidentReport(severity_score=95, services=_services(DEGRADED))
        assert score_report(report).severity_score == 95


class TestLabels:
    @pytest.mark.parametrize("score,tier", [(100, "P1"), (80, "P1"), (79, "P2"), (60, "P2"), (59, "P3"), (0, "P3")])
    def test_severity_tier(self, score, tier):
        assert severity_tier(score) == tier

    def test_build_report_labels(self):
        report = IncidentReport(
            severity_score=85,
            business_impact_score=49,
            confidence=0.72,
            services=_services(DOWN, DEGRADED, HEALTHY),
        )

        labels = build_report_labels(report)

        assert labels.severity_tier == "P1"
        assert labels.confidence_percent == 72
        assert labels.impact_text == "49/100 business impact"
        assert labels.blast_radius_text == "50% (2 of 3 services affected)"
