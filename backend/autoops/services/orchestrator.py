import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from autoops.core.config import settings
from autoops.core.errors import InputError
from autoops.core.logging import get_logger
from autoops.models.schemas import (
    AnalysisResult, IncidentReport, ReportDocument, StreamEvent
)
from autoops.services.enrichment import SearchClient, build_external_context
from autoops.services.llm_client import ModelClient
from autoops.services.normalizer import extract_json, normalize_report
from autoops.services.prompts import build_analyze_prompt, build_stream_prompt
from autoops.services.scoring import SeverityPolicy, build_report_labels, score_report
from autoops.services.stream_parser import IncrementalParser, run_parser

logger = get_logger(__name__)

NO_EXTERNAL_INTELLIGENCE = "No external intelligence available."


class PipelineTimings:
    """Track timing metrics for pipeline stages."""

    def __init__(self):
        self.start_time = time.time()
        self.enrich_ms: float = 0
        self.llm_ms: float = 0
        self.normalize_ms: float = 0
        self.total_ms: float = 0

    def log_summary(self, request_id: str):
        self.total_ms = (time.time() - self.start_time) * 1000
        logger.info(
            f"[{request_id}] Pipeline completed - "
            f"enrich: {self.enrich_ms:.1f}ms, "
            f"llm: {self.llm_ms:.1f}ms, "
            f"normalize: {self.normalize_ms:.1f}ms, "
            f"total: {self.total_ms:.1f}ms"
        )


def default_policy() -> SeverityPolicy:
    """Severity policy from settings; unknown values use additive."""
    try:
        return SeverityPolicy(settings.severity_policy.strip().lower())
    except ValueError:
        logger.warning(
            f"Unknown severity policy '{settings.severity_policy}', using additive")
        return SeverityPolicy.ADDITIVE


def validate_logs(logs: Any) -> str:
    if not isinstance(logs, str) or not logs.strip():
        raise InputError("Logs are required")
    return logs


def analyze_logs(
    logs: Any,
    model_client: ModelClient,
    search_client: SearchClient,
    policy: Optional[SeverityPolicy] = None,
) -> AnalysisResult:
    """
    Synchronous analysis pipeline.

    Stages:
    1. Validate input
    2. Gather external context (degrades to a placeholder)
    3. Single blocking model call
    4. Extract JSON, normalize and score

    Raises InputError, UpstreamError or MalformedResponseError; never
    returns a partial report.
    """
    logs = validate_logs(logs)
    policy = policy or default_policy()
    request_id = str(uuid.uuid4())[:8]
    timings = PipelineTimings()

    logger.info(f"[{request_id}] Starting analysis, {len(logs)} chars of logs")

    t0 = time.time()
    external_context = build_external_context(logs, search_client)
    timings.enrich_ms = (time.time() - t0) * 1000
    logger.debug(f"[{request_id}] External context: {external_context[:200]}")

    t0 = time.time()
    text = model_client.complete(build_analyze_prompt(logs, external_context))
    timings.llm_ms = (time.time() - t0) * 1000

    t0 = time.time()
    raw = extract_json(text)
    report = score_report(normalize_report(raw), policy)
    timings.normalize_ms = (time.time() - t0) * 1000

    timings.log_summary(request_id)
    logger.info(
        f"[{request_id}] {report.incident_type} - severity: {report.severity_score}, "
        f"impact: {report.business_impact_score}"
    )

    return AnalysisResult(report=report, external_intelligence=external_context)


def stream_analysis(
    logs: Any,
    model_client: ModelClient,
    policy: Optional[SeverityPolicy] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Streaming analysis pipeline.

    Input is validated eagerly so an InputError surfaces before any model
    call; the returned generator then yields narration and one terminal event.
    """
    logs = validate_logs(logs)
    parser = IncrementalParser(policy or default_policy())
    logger.info(f"Starting streaming analysis, {len(logs)} chars of logs")
    return run_parser(model_client.stream(build_stream_prompt(logs)), parser)


def generate_incident_id() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "INC-" + "".join(secrets.choice(alphabet) for _ in range(8))


def build_report_document(
    raw_report: Any,
    external_intelligence: Optional[str] = None,
    incident_id: Optional[str] = None,
) -> ReportDocument:
    """
    Assemble what the document renderer needs: the report with defaults
    filled in, pre-rendered labels and an incident identifier.
    """
    report = raw_report if isinstance(raw_report, IncidentReport) else normalize_report(raw_report)
    return ReportDocument(
        incident_id=incident_id or generate_incident_id(),
        generated_at=datetime.now(timezone.utc).isoformat(),
        report=report,
        labels=build_report_labels(report),
        external_intelligence=external_intelligence or NO_EXTERNAL_INTELLIGENCE,
    )
