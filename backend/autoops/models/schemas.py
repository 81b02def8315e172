from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Literal, Union, Annotated
from datetime import datetime, timezone
from enum import Enum


# ============================================================================
# Incident Report Models
# ============================================================================

class ServiceStatus(str, Enum):
    """Observed health of a service."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class ProbableCause(BaseModel):
    """A ranked root-cause hypothesis."""
    model_config = ConfigDict(frozen=True)

    name: str
    probability: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    recommended_action: str = ""


class Service(BaseModel):
    """A service in the affected topology."""
    model_config = ConfigDict(frozen=True)

    name: str
    status: ServiceStatus = ServiceStatus.DEGRADED
    signals: List[str] = Field(default_factory=list)
    suspected_components: List[str] = Field(default_factory=list)


class PropagationNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class PropagationEdge(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    to: str
    label: str = "depends_on"


class Propagation(BaseModel):
    """Failure propagation graph between services."""
    model_config = ConfigDict(frozen=True)

    nodes: List[PropagationNode] = Field(default_factory=list)
    edges: List[PropagationEdge] = Field(default_factory=list)


class IncidentReport(BaseModel):
    """Canonical, normalized and scored incident report."""
    model_config = ConfigDict(frozen=True)

    incident_type: str = "Unknown Incident"
    executive_summary: str = ""
    severity_score: int = Field(0, ge=0, le=100)
    business_impact_score: int = Field(0, ge=0, le=100)
    estimated_recovery_time_minutes: float = Field(0.0, ge=0.0)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    probable_causes: List[ProbableCause] = Field(default_factory=list)
    recommended_runbook_steps: List[str] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)
    propagation: Propagation = Field(default_factory=Propagation)


class AnalysisResult(BaseModel):
    """Synchronous pipeline result: the report plus the enrichment text used."""
    report: IncidentReport
    external_intelligence: str


# ============================================================================
# Streaming Event Models
# ============================================================================

class TokenEvent(BaseModel):
    """Narration text emitted before the JSON payload."""
    event: Literal["token"] = "token"
    text: str


class FinalEvent(BaseModel):
    """The completed report; always the last event of a successful stream."""
    event: Literal["final"] = "final"
    report: IncidentReport


class ErrorEvent(BaseModel):
    """Terminal failure of a stream."""
    event: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[TokenEvent, FinalEvent, ErrorEvent],
    Field(discriminator="event"),
]


# ============================================================================
# Collaborator Models
# ============================================================================

class SearchSummary(BaseModel):
    """A single external search hit used as enrichment context."""
    title: str = ""
    snippet: str = ""
    url: str = ""


class ReportLabels(BaseModel):
    """Pre-rendered labels for the document renderer."""
    severity_tier: Literal["P1", "P2", "P3"]
    impact_text: str
    blast_radius_text: str
    confidence_percent: int


class ReportDocument(BaseModel):
    """Payload handed to the document-rendering collaborator."""
    incident_id: str
    generated_at: str
    report: IncidentReport
    labels: ReportLabels
    external_intelligence: str = "No external intelligence available."


# ============================================================================
# API Request/Response Models
# ============================================================================

class AnalyzeRequest(BaseModel):
    """Body of POST /api/analyze and /api/analyze/stream."""
    logs: Optional[str] = None


class AnalyzeResponse(IncidentReport):
    """Response from POST /api/analyze."""
    external_intelligence: str


class ExecuteRequest(BaseModel):
    service: Optional[str] = None


class ExecuteResponse(BaseModel):
    """Result of forwarding a remediation action to the webhook."""
    status: str = "executed"
    service: str
    webhook_status: int
    message: str


class ReportRequest(BaseModel):
    """Body of POST /api/report."""
    report: Dict[str, Any] = Field(default_factory=dict)
    external_intelligence: Optional[str] = None
    incident_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
