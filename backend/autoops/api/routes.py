import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from autoops.core.errors import InputError, MalformedResponseError, UpstreamError
from autoops.core.logging import get_logger
from autoops.models.schemas import (
    AnalyzeRequest, AnalyzeResponse, ErrorResponse, ExecuteRequest,
    ExecuteResponse, FinalEvent, HealthResponse, ReportDocument,
    ReportRequest, StreamEvent, TokenEvent
)
from autoops.services.enrichment import SearchClient, get_search_client
from autoops.services.execution import trigger_action
from autoops.services.llm_client import ModelClient, get_model_client
from autoops.services.orchestrator import (
    analyze_logs, build_report_document, stream_analysis
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
}


def format_sse(event: StreamEvent) -> str:
    """Encode one event as a server-sent event frame."""
    if isinstance(event, FinalEvent):
        data = event.report.model_dump(mode="json", by_alias=True)
    elif isinstance(event, TokenEvent):
        data = {"text": event.text}
    else:
        data = {"message": event.message}
    return f"event: {event.event}\ndata: {json.dumps(data)}\n\n"


async def _sse_frames(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing logs"},
        502: {"model": ErrorResponse, "description": "Model or payload failure"},
        500: {"model": ErrorResponse, "description": "Processing error"}
    }
)
def analyze(
    payload: AnalyzeRequest,
    model_client: ModelClient = Depends(get_model_client),
    search_client: SearchClient = Depends(get_search_client),
):
    """
    Analyze incident logs in a single model call.

    Returns the scored report plus the external intelligence that was
    given to the model.
    """
    try:
        result = analyze_logs(payload.logs, model_client, search_client)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (UpstreamError, MalformedResponseError) as e:
        logger.error(f"Analysis failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to analyze logs")

    return AnalyzeResponse.model_validate({
        **result.report.model_dump(by_alias=True),
        "external_intelligence": result.external_intelligence,
    })


@router.post(
    "/analyze/stream",
    responses={
        200: {"content": {"text/event-stream": {}}},
        400: {"model": ErrorResponse, "description": "Missing logs"}
    }
)
async def analyze_stream(
    payload: AnalyzeRequest,
    model_client: ModelClient = Depends(get_model_client),
):
    """
    Stream investigation narration followed by the final report.

    Emits `token` events, then exactly one `final` or `error` event.
    """
    try:
        events = stream_analysis(payload.logs, model_client)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StreamingResponse(
        _sse_frames(events),
        media_type="text/event-stream; charset=utf-8",
        headers=SSE_HEADERS,
    )


@router.post(
    "/execute",
    response_model=ExecuteResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Service not allowed"},
        502: {"model": ErrorResponse, "description": "Webhook failure"}
    }
)
def execute(payload: ExecuteRequest):
    """Trigger a remediation action for an allow-listed service."""
    try:
        return trigger_action(payload.service)
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/report", response_model=ReportDocument)
async def report_document(payload: ReportRequest):
    """
    Build the document payload for an analyzed incident.

    Missing or malformed report fields are defaulted before labels are
    rendered.
    """
    return build_report_document(
        payload.report,
        external_intelligence=payload.external_intelligence,
        incident_id=payload.incident_id,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()
