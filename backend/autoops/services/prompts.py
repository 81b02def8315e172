from autoops.services.stream_parser import CLOSE_TAG, OPEN_TAG

REPORT_JSON_SCHEMA = """{
  "incident_type": string,
  "executive_summary": string,
  "severity_score": number (0-100),
  "business_impact_score": number (0-100),
  "estimated_recovery_time_minutes": number,
  "probable_causes": [
    { "name": string, "probability": number (0-1), "reasoning": string, "recommended_action": string }
  ],
  "recommended_runbook_steps": string[],
  "confidence": number (0-1),
  "services": [
    {
      "name": string,
      "status": "healthy" | "degraded" | "down",
      "signals": string[],
      "suspected_components": string[]
    }
  ],
  "propagation": {
    "nodes": [{ "id": string, "label": string }],
    "edges": [{ "from": string, "to": string, "label": string }]
  }
}"""

ANALYZE_PROMPT_TEMPLATE = """You must also consider the following real-time external intelligence:

{external_context}

---

You are a Tier-1 Incident Commander AI operating in a production-critical environment.

Return STRICT JSON ONLY.

JSON schema:
{schema}

CRITICAL SCORING RULES:
- Any "CRITICAL" log MUST significantly increase severity_score.
- "cluster unavailable" implies near-total outage.
- Failed failover implies systemic production impact.
- Multiple CRITICAL lines imply severity >= 85.
- Production database failure implies high business impact unless explicitly mitigated.

Severity Guidelines:
- Full cluster outage: 85-100
- Regional outage: 60-84
- Degraded service: 30-59
- Minor anomaly: 0-29

MANDATORY:
- Always provide at least 2 probable root causes.
- Always populate services.
- Always populate propagation.
- Do NOT be conservative.
- Assume production traffic unless logs say otherwise.

Logs:
{logs}"""

STREAM_PROMPT_TEMPLATE = """Logs may be written in Korean or English.

If logs are written in Korean:
- Translate internally to English.
- Extract the technical meaning.
- Generate incident_type in professional English SRE terminology.
- If database issues are detected, use terms like "Database Connectivity Failure",
  "Database Timeout" or "DB Connection Pool Exhaustion".
- If latency issues are detected, include "Latency Degradation" or "Performance Degradation".

Always generate a clear, specific, technical incident_type. Never return empty strings.

You are a senior SRE AI.

You must do TWO things:

(1) Stream concise investigation narration.
(2) At the very end output STRICT JSON wrapped exactly like this:

{open_tag}
{{ ...valid json... }}
{close_tag}

No markdown. No explanation after the closing tag.

STRICT JSON schema:
{schema}

Rules:
- severity_score & business_impact_score must be integers 0..100
- probability & confidence must be 0..1
- propagation.nodes.id should match service names when possible

Logs:
{logs}"""


def build_analyze_prompt(logs: str, external_context: str) -> str:
    return ANALYZE_PROMPT_TEMPLATE.format(
        external_context=external_context,
        schema=REPORT_JSON_SCHEMA,
        logs=logs,
    )


def build_stream_prompt(logs: str) -> str:
    return STREAM_PROMPT_TEMPLATE.format(
        open_tag=OPEN_TAG,
        close_tag=CLOSE_TAG,
        schema=REPORT_JSON_SCHEMA,
        logs=logs,
    ).strip()
