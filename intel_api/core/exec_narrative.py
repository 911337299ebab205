"""
Executive narrative generation.

Builds the briefing prompt from a NarrativeContext, asks the configured LLM
for RISKS / OPPORTUNITIES / THIS WEEK'S STORYLINE sections and falls back to
deterministic template text whenever the LLM is off, unconfigured or fails.
"""

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from intel_api.core.feature_flags import FeatureFlag, is_feature_enabled
from intel_api.core.llm import LLMError, complete, is_llm_available
from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import (
    SOURCE_SYSTEM_LABELS,
    InsightDraft,
    KpiDraft,
    NarrativeContext,
    NarrativeKpiSnapshot,
    NarrativeOpportunitySummary,
    NarrativeRiskSummary,
)

logger = get_logger(__name__)

TEMPLATE_MODEL_NAME = "template"
SYSTEM_PROMPT = "You are an executive communications advisor."
MAX_CONTEXT_ITEMS = 5

PERIOD_LABELS = {
    "24h": "Last 24 Hours",
    "7d": "This Week",
    "30d": "This Month",
}

_RISKS_RE = re.compile(r"RISKS?:?\s*([\s\S]*?)(?=OPPORTUNITIES?:|THIS WEEK|$)", re.IGNORECASE)
_OPPORTUNITIES_RE = re.compile(
    r"OPPORTUNITIES?:?\s*([\s\S]*?)(?=THIS WEEK|STORYLINE|$)", re.IGNORECASE
)
_STORYLINE_RE = re.compile(
    r"(?:THIS WEEK'?S?\s*STORYLINE|STORYLINE|THIS WEEK'?S?):?\s*([\s\S]*?)$", re.IGNORECASE
)


@dataclass
class NarrativeSections:
    risks: str = ""
    opportunities: str = ""
    storyline: str = ""


@dataclass
class NarrativeContent:
    text: str
    sections: NarrativeSections
    model_name: str
    provider: str
    tokens_input: int = 0
    tokens_output: int = 0
    duration_ms: int = 0

    @property
    def tokens_used(self) -> int:
        return self.tokens_input + self.tokens_output

    @property
    def is_template(self) -> bool:
        return self.model_name == TEMPLATE_MODEL_NAME


def period_label(time_window: str) -> str:
    return PERIOD_LABELS.get(time_window, "This Quarter")


def _fmt(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def build_context(
    time_window: str,
    primary_focus: str,
    kpis: Iterable[KpiDraft],
    insights: Iterable[InsightDraft],
    custom_prompt_hint: str | None = None,
) -> NarrativeContext:
    """
    Build the context snapshot a narrative is generated from.

    Accepts either aggregation drafts or stored records; both expose the
    same field names.
    """
    insights = list(insights)
    kpis = list(kpis)

    risks = [
        NarrativeRiskSummary(
            title=i.title,
            severity=i.severity_or_impact,
            source=i.source_system,
            description=i.description,
        )
        for i in insights
        if i.is_risk
    ][:MAX_CONTEXT_ITEMS]

    opportunities = [
        NarrativeOpportunitySummary(
            title=i.title,
            impact=i.severity_or_impact,
            source=i.source_system,
            description=i.description,
        )
        for i in insights
        if i.is_opportunity
    ][:MAX_CONTEXT_ITEMS]

    snapshot = [
        NarrativeKpiSnapshot(
            key=k.metric_key,
            label=k.metric_label,
            value=k.metric_value,
            trend=k.metric_trend.direction,
            change_percent=k.metric_trend.change_percent,
        )
        for k in kpis
    ]

    stats: dict[str, int] = {}
    for insight in insights:
        stats[insight.source_system] = stats.get(insight.source_system, 0) + 1

    return NarrativeContext(
        time_window=time_window,
        primary_focus=primary_focus,
        top_risks=risks,
        top_opportunities=opportunities,
        kpi_snapshot=snapshot,
        source_system_stats=stats,
        custom_prompt_hint=custom_prompt_hint,
        generated_at=datetime.now(timezone.utc),
    )


def build_prompt(context: NarrativeContext) -> str:
    """Render the executive briefing prompt for an LLM."""
    risks_text = "\n".join(
        f"{n}. {r.title} (Severity: {_fmt(r.severity)}, "
        f"Source: {SOURCE_SYSTEM_LABELS.get(r.source, r.source)})"
        for n, r in enumerate(context.top_risks, start=1)
    )
    opportunities_text = "\n".join(
        f"{n}. {o.title} (Impact: {_fmt(o.impact)}, "
        f"Source: {SOURCE_SYSTEM_LABELS.get(o.source, o.source)})"
        for n, o in enumerate(context.top_opportunities, start=1)
    )

    kpi_lines = []
    for k in context.kpi_snapshot:
        trend = f"Trend: {k.trend}"
        if k.change_percent:
            sign = "+" if k.change_percent > 0 else ""
            trend = f"{trend}, {sign}{_fmt(k.change_percent)}%"
        kpi_lines.append(f"- {k.label}: {_fmt(k.value)} ({trend})")
    kpi_text = "\n".join(kpi_lines)

    prompt = f"""You are an executive communications advisor generating a concise weekly briefing for C-suite leadership.

Time Period: {period_label(context.time_window)}
Focus Area: {context.primary_focus}

TOP RISKS:
{risks_text or 'No significant risks identified.'}

TOP OPPORTUNITIES:
{opportunities_text or 'No notable opportunities identified.'}

KEY METRICS:
{kpi_text or 'No metrics available.'}

Generate a brief executive summary with three sections:
1. RISKS: A 2-3 sentence summary of the most critical risks requiring attention.
2. OPPORTUNITIES: A 2-3 sentence summary of the best growth or improvement opportunities.
3. THIS WEEK'S STORYLINE: A 3-4 sentence narrative that ties together the key themes and provides strategic context.

Keep the tone professional, direct, and action-oriented. Focus on what matters most to leadership."""

    if context.custom_prompt_hint:
        prompt = f"{prompt}\n\nAdditional guidance from the requester: {context.custom_prompt_hint}"

    return prompt


def parse_sections(text: str) -> NarrativeSections:
    """Split LLM output into its three labelled sections."""

    def _group(pattern: re.Pattern) -> str:
        match = pattern.search(text)
        return match.group(1).strip() if match else ""

    return NarrativeSections(
        risks=_group(_RISKS_RE),
        opportunities=_group(_OPPORTUNITIES_RE),
        storyline=_group(_STORYLINE_RE),
    )


def render_narrative_text(sections: NarrativeSections) -> str:
    return (
        f"RISKS:\n{sections.risks}\n\n"
        f"OPPORTUNITIES:\n{sections.opportunities}\n\n"
        f"THIS WEEK'S STORYLINE:\n{sections.storyline}"
    )


def template_narrative(context: NarrativeContext) -> NarrativeContent:
    """Deterministic narrative used whenever the LLM path is unavailable."""
    if context.top_risks:
        titles = ", ".join(r.title.lower() for r in context.top_risks[:3])
        risks = f"Key risks include {titles}. These require immediate attention from leadership."
    else:
        risks = "No significant risks identified during this period."

    if context.top_opportunities:
        titles = ", ".join(o.title.lower() for o in context.top_opportunities[:3])
        opportunities = f"Notable opportunities include {titles}. These present potential for growth."
    else:
        opportunities = "Continue monitoring for emerging opportunities."

    risk_index = next(
        (k.value for k in context.kpi_snapshot if k.key == "overall_risk_index"), None
    )
    posture = _fmt(risk_index) if risk_index else "moderate"
    storyline = (
        f"The overall risk posture remains {posture}. Focus areas for the coming week "
        "should include addressing top risks while positioning for identified opportunities."
    )

    sections = NarrativeSections(risks=risks, opportunities=opportunities, storyline=storyline)
    return NarrativeContent(
        text=render_narrative_text(sections),
        sections=sections,
        model_name=TEMPLATE_MODEL_NAME,
        provider="template",
    )


def generate_narrative_content(context: NarrativeContext) -> NarrativeContent:
    """
    Produce narrative text for a context.

    Uses the configured LLM when narratives are enabled and a provider is
    available; any LLM failure falls back to the template narrative.
    """
    start = time.time()

    content: NarrativeContent | None = None
    if not is_feature_enabled(FeatureFlag.ENABLE_LLM_NARRATIVES):
        logger.debug("LLM narratives disabled, using template")
    elif not is_llm_available():
        logger.debug("No LLM provider configured, using template")
    else:
        try:
            result = complete(SYSTEM_PROMPT, build_prompt(context), temperature=0.7)
            content = NarrativeContent(
                text=result.text,
                sections=parse_sections(result.text),
                model_name=result.model,
                provider=result.provider,
                tokens_input=result.tokens_input,
                tokens_output=result.tokens_output,
            )
        except LLMError as e:
            logger.error(f"LLM narrative generation failed, using template: {e}")

    if content is None:
        content = template_narrative(context)

    content.duration_ms = int((time.time() - start) * 1000)
    return content
