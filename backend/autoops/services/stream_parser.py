"""
Incremental parser for streamed model output.

The model narrates its investigation and then emits the report wrapped in
<FINAL_JSON>...</FINAL_JSON>. Fragments arrive in order and may split the
delimiters anywhere; the parser turns them into narration events followed
by exactly one terminal event (final report or error).
"""
import json
from enum import Enum
from typing import AsyncIterator, List

from autoops.core.errors import UpstreamError
from autoops.core.logging import get_logger
from autoops.models.schemas import ErrorEvent, FinalEvent, StreamEvent, TokenEvent
from autoops.services.normalizer import normalize_report
from autoops.services.scoring import SeverityPolicy, score_report

logger = get_logger(__name__)

OPEN_TAG = "<FINAL_JSON>"
CLOSE_TAG = "</FINAL_JSON>"

INVALID_JSON_MESSAGE = "Invalid JSON structure from model."
MISSING_JSON_MESSAGE = "Model did not return FINAL_JSON block."
STREAM_FAILED_MESSAGE = "Streaming failed"


class ParserState(str, Enum):
    NARRATING = "narrating"
    JSON_DETECTED = "json_detected"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {ParserState.COMPLETE, ParserState.FAILED, ParserState.CANCELLED}


def partial_tag_length(text: str, tag: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of tag."""
    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return size
    return 0


class IncrementalParser:
    """
    State machine over one model stream.

    NARRATING -> JSON_DETECTED -> COMPLETE | FAILED, or CANCELLED when the
    upstream is aborted. One instance per analysis; not shared.
    """

    def __init__(self, policy: SeverityPolicy = SeverityPolicy.ADDITIVE):
        self.policy = policy
        self.state = ParserState.NARRATING
        self._buffer = ""
        # First buffer offset not yet emitted as narration
        self._narrated = 0
        # Offset just past the opening tag
        self._payload_start = -1
        # Where the next closing-tag search may begin
        self._close_scan = -1

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def feed(self, fragment: str) -> List[StreamEvent]:
        """Consume the next fragment and return the events it produces."""
        if self.done or not fragment:
            return []

        self._buffer += fragment
        events: List[StreamEvent] = []

        if self.state == ParserState.NARRATING:
            events.extend(self._scan_narration())

        if self.state == ParserState.JSON_DETECTED:
            events.extend(self._scan_payload())

        return events

    def close(self) -> List[StreamEvent]:
        """The upstream ended normally."""
        if self.done:
            return []

        events: List[StreamEvent] = []
        if self.state == ParserState.NARRATING:
            pending = self._buffer[self._narrated:]
            if pending:
                events.append(TokenEvent(text=pending))

        logger.warning(f"Stream ended in state {self.state.value} without a complete payload")
        events.extend(self._finish(ParserState.FAILED, ErrorEvent(message=MISSING_JSON_MESSAGE)))
        return events

    def fail(self, message: str) -> List[StreamEvent]:
        """The upstream broke; report it once unless already terminal."""
        if self.done:
            return []
        return self._finish(ParserState.FAILED, ErrorEvent(message=message))

    def cancel(self) -> None:
        """Abort silently; cancellation emits nothing."""
        if self.done:
            return
        logger.debug(f"Parser cancelled in state {self.state.value}")
        self.state = ParserState.CANCELLED
        self._buffer = ""

    def _scan_narration(self) -> List[StreamEvent]:
        start = self._buffer.find(OPEN_TAG, self._narrated)

        if start == -1:
            # Hold back a tail that may be the start of a split opening tag
            end = len(self._buffer) - partial_tag_length(self._buffer, OPEN_TAG)
            end = max(end, self._narrated)
            text = self._buffer[self._narrated:end]
            self._narrated = end
            return [TokenEvent(text=text)] if text else []

        narration = self._buffer[self._narrated:start]
        self._narrated = start
        self._payload_start = start + len(OPEN_TAG)
        self._close_scan = self._payload_start
        self.state = ParserState.JSON_DETECTED
        logger.debug(f"Opening tag detected at offset {start}")

        return [TokenEvent(text=narration)] if narration.strip() else []

    def _scan_payload(self) -> List[StreamEvent]:
        end = self._buffer.find(CLOSE_TAG, self._close_scan)
        if end == -1:
            self._close_scan = max(
                self._payload_start, len(self._buffer) - len(CLOSE_TAG) + 1)
            return []

        payload = self._buffer[self._payload_start:end].strip()
        try:
            raw = json.loads(payload)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(f"Final payload is not valid JSON: {e}")
            return self._finish(ParserState.FAILED, ErrorEvent(message=INVALID_JSON_MESSAGE))

        report = score_report(normalize_report(raw), self.policy)
        logger.info(
            f"Final report parsed - severity: {report.severity_score}, "
            f"impact: {report.business_impact_score}"
        )
        return self._finish(ParserState.COMPLETE, FinalEvent(report=report))

    def _finish(self, state: ParserState, event: StreamEvent) -> List[StreamEvent]:
        self.state = state
        self._buffer = ""
        return [event]


async def run_parser(
    fragments: AsyncIterator[str],
    parser: IncrementalParser,
) -> AsyncIterator[StreamEvent]:
    """
    Drive a parser over an async fragment source.

    Transport failures, and any other error raised while reading the source,
    become one terminal error event. If the consumer stops iterating early,
    the parser is cancelled and the source is closed.
    """
    try:
        async for fragment in fragments:
            for event in parser.feed(fragment):
                yield event
            if parser.done:
                break

        for event in parser.close():
            yield event

    except UpstreamError as e:
        logger.error(f"Model stream failed: {e}")
        for event in parser.fail(str(e)):
            yield event

    except Exception as e:
        logger.error(f"Model stream crashed: {e}", exc_info=True)
        for event in parser.fail(STREAM_FAILED_MESSAGE):
            yield event

    finally:
        parser.cancel()
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()
