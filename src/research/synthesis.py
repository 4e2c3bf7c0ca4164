"""Turn extracted sources into a research synthesis.

Three strategies, chosen once at startup by ``make_synthesizer``:

- ``AgentSynthesizer`` (default) packages the sources into a prompt and
  returns it behind ``AGENT_SYNTHESIS_MARKER`` so the calling agent
  performs the synthesis itself.
- ``DirectSynthesizer`` asks an OpenAI chat model for a JSON synthesis.
- ``BasicSynthesizer`` stitches titles and summaries together, no model.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from research.config import get_openai_key, get_synthesis_mode, get_synthesis_model
from research.errors import SynthesisUnavailableError
from research.models import (
    AGENT_SYNTHESIS_MARKER,
    ExtractedContent,
    FocusAreaAnalysis,
    SourceQuality,
    Synthesis,
)

logger = logging.getLogger(__name__)

Contents = Mapping[str, ExtractedContent]
Qualities = Mapping[str, SourceQuality]

DEPTH_INSTRUCTIONS = {
    "basic": "Provide a brief 2-3 paragraph overview with 3-5 key findings.",
    "intermediate": (
        "Provide a comprehensive analysis with 5-7 key findings, common themes, "
        "and practical takeaways."
    ),
    "advanced": (
        "Provide an in-depth analysis with 7-10 findings, detailed themes, "
        "contradictions between sources, and actionable recommendations."
    ),
}
FINDING_RANGES = {"basic": "3-5", "intermediate": "5-7", "advanced": "7-10"}
MAX_TOKENS = {"basic": 1500, "intermediate": 3000, "advanced": 4000}

AGENT_EXCERPT_CHARS = 2000
DIRECT_EXCERPT_CHARS = 3000
TRUNCATION_MARKER = "\n\n[Content truncated...]"

_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


def truncate(content: str, max_chars: int) -> str:
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER


def _source_block(index: int, url: str, content: ExtractedContent, quality: Optional[SourceQuality]) -> list[str]:
    lines = [
        f"=== SOURCE {index} ===",
        f"Title: {content.title}",
        f"URL: {url}",
    ]
    if quality is not None:
        lines.append(f"Type: {quality.type.value}")
        lines.append(f"Authority: {round(quality.authority_score * 100)}%")
        lines.append(f"Credibility: {round(quality.credibility_score * 100)}%")
        if quality.author:
            lines.append(f"Author: {quality.author}")
        if quality.publication_date:
            lines.append(f"Published: {quality.publication_date}")
    return lines


class Synthesizer(ABC):
    """A synthesis strategy; ``method`` is reported in the report metadata."""

    method = "basic"

    @abstractmethod
    def synthesize(
        self,
        topic: str,
        contents: Contents,
        qualities: Qualities,
        depth: str = "intermediate",
        focus_areas: Optional[list[str]] = None,
    ) -> Synthesis:
        """Synthesize *contents*; raises SynthesisUnavailableError if the backend is down."""


class BasicSynthesizer(Synthesizer):
    """Model-free synthesis from titles and summaries."""

    method = "basic"

    def synthesize(self, topic, contents, qualities, depth="intermediate", focus_areas=None):
        findings = []
        themes: dict[str, None] = {}
        for content in contents.values():
            if content.summary:
                findings.append(f"{content.title}: {content.summary}")
            for word in content.title.lower().split():
                if len(word) > 5:
                    themes.setdefault(word, None)

        lead = findings[0] if findings else "Multiple sources analyzed."
        return Synthesis(
            summary=f'Research on "{topic}" based on {len(contents)} sources. {lead}',
            key_findings=findings[:7],
            themes=list(themes)[:5],
            focus_analysis=self.focus_analysis(focus_areas, contents) if focus_areas else None,
            method=self.method,
        )

    @staticmethod
    def focus_analysis(focus_areas: list[str], contents: Contents) -> dict[str, FocusAreaAnalysis]:
        analysis = {}
        for area in focus_areas:
            area_lower = area.lower()
            relevant = [
                f"{c.title}: {c.summary or c.description}"
                for c in contents.values()
                if area_lower in c.title.lower() or area_lower in c.content.lower()
            ]
            if relevant:
                summary = f"Found {len(relevant)} sources discussing {area}"
            else:
                summary = f"Limited information found on {area}"
            analysis[area] = FocusAreaAnalysis(summary=summary, findings=relevant[:3])
        return analysis


def build_agent_prompt(
    topic: str,
    contents: Contents,
    qualities: Qualities,
    depth: str,
    focus_areas: Optional[list[str]] = None,
) -> str:
    """Research brief for an agent: sources, quality signals, output outline."""
    lines = [
        "RESEARCH SYNTHESIS TASK",
        "",
        f'You are analyzing research on: "{topic}"',
        "",
        f"**Analysis Depth:** {depth}",
        f"**Number of Sources:** {len(contents)}",
    ]
    if focus_areas:
        lines.append(f"**Focus Areas:** {', '.join(focus_areas)}")
    lines += ["", f"**Instructions:** {DEPTH_INSTRUCTIONS[depth]}"]
    if focus_areas:
        lines += [
            "",
            "**Focus Area Requirements:**",
            f"For each focus area ({', '.join(focus_areas)}), provide:",
            "1. Dedicated summary of findings specific to that area",
            "2. 3-5 key points",
            "3. Best practices or recommendations specific to that area",
        ]

    lines += ["", "**Research Sources:**"]
    for i, (url, content) in enumerate(contents.items(), 1):
        lines.append("")
        lines += _source_block(i, url, content, qualities.get(url))
        lines += [
            "",
            "Content Summary:",
            content.summary or content.description,
            "",
            "Key Excerpts:",
            truncate(content.content, AGENT_EXCERPT_CHARS),
        ]

    lines += [
        "",
        "**Required Output Format:**",
        "",
        "## Executive Summary",
        "[Comprehensive 3-6 paragraph synthesis of all sources]",
        "",
        "## Key Findings",
        f"[{FINDING_RANGES[depth]} numbered findings, each with source attribution]",
        "",
        "## Common Themes",
        "- [Theme]",
    ]
    if focus_areas:
        lines += ["", "## Focus Area Analysis"]
        for area in focus_areas:
            lines += [
                "",
                f"### {area}",
                f"**Summary:** [Analysis specific to {area}]",
                "**Key Points:**",
                "- [Point]",
                "**Best Practices:**",
                "- [Practice]",
            ]
    if depth == "advanced":
        lines += [
            "",
            "## Contradictions Between Sources",
            "- [Disagreements or conflicting information between sources]",
            "",
            "## Recommendations",
            "- [Actionable recommendation]",
        ]
    lines += [
        "",
        "**Analysis Guidelines:**",
        "- Synthesize across ALL sources instead of summarizing each separately",
        "- Note the authority/credibility scores when weighing conflicting information",
        '- Cite sources when making specific claims (e.g., "according to [Source Title]...")',
    ]
    if depth == "advanced":
        lines.append("- Identify gaps in the research or areas needing more investigation")
    lines += ["", "Begin your analysis:"]
    return "\n".join(lines)


class AgentSynthesizer(Synthesizer):
    """Defer synthesis to the calling agent by returning its brief."""

    method = "agent"

    def synthesize(self, topic, contents, qualities, depth="intermediate", focus_areas=None):
        prompt = build_agent_prompt(topic, contents, qualities, depth, focus_areas)
        focus = None
        if focus_areas:
            focus = {
                area: FocusAreaAnalysis(
                    summary=f"Agent will provide dedicated analysis for: {area}",
                    findings=[f"Detailed findings for {area} will be synthesized by the agent"],
                )
                for area in focus_areas
            }
        return Synthesis(
            summary=f"{AGENT_SYNTHESIS_MARKER}\n\n{prompt}",
            key_findings=[
                "Agent synthesis will be performed by the calling agent",
                "Launch a general-purpose agent with the provided research data",
                "The agent will analyze all sources and generate comprehensive findings",
            ],
            themes=["Agent-based synthesis in progress"],
            focus_analysis=focus,
            method=self.method,
        )


def build_direct_prompt(
    topic: str,
    contents: Contents,
    qualities: Qualities,
    depth: str,
    focus_areas: Optional[list[str]] = None,
) -> str:
    lines = [
        f'You are a research analyst. Analyze the following {len(contents)} sources about "{topic}" '
        "and provide a structured synthesis.",
        "",
        DEPTH_INSTRUCTIONS[depth],
    ]
    if focus_areas:
        lines += ["", f"Focus Areas to address: {', '.join(focus_areas)}"]
    lines += ["", "SOURCES:"]
    for i, (url, content) in enumerate(contents.items(), 1):
        lines.append("")
        lines += _source_block(i, url, content, qualities.get(url))
        lines += ["", "Content:", truncate(content.content, DIRECT_EXCERPT_CHARS)]

    schema: dict[str, Any] = {
        "summary": "A well-written comprehensive summary",
        "key_findings": ["Finding 1", "Finding 2"],
        "themes": ["Theme 1", "Theme 2"],
    }
    if focus_areas:
        schema["focus_analysis"] = {
            area: {"summary": "...", "findings": ["..."], "best_practices": ["..."]}
            for area in focus_areas
        }
    schema["contradictions"] = ["Any contradictions found between sources"]
    schema["recommendations"] = ["Actionable recommendations based on the research"]

    lines += [
        "",
        "Provide your response in the following JSON format:",
        json.dumps(schema, indent=2),
        "",
        "Ensure your response is valid JSON and comprehensive.",
    ]
    return "\n".join(lines)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def parse_synthesis_response(text: str, method: str = "direct") -> Synthesis:
    """Parse the first JSON object in a model reply.

    Replies without usable JSON keep their first 1000 characters as the
    summary.
    """
    m = _JSON_RE.search(text)
    try:
        if not m:
            raise ValueError("no JSON object in response")
        parsed = json.loads(m.group(0))
        if not isinstance(parsed, dict):
            raise ValueError("JSON response is not an object")
    except ValueError as e:
        logger.warning("Failed to parse synthesis response: %s", e)
        return Synthesis(
            summary=text[:1000],
            key_findings=["Analysis completed - see summary for details"],
            method=method,
        )

    focus = None
    raw_focus = parsed.get("focus_analysis")
    if isinstance(raw_focus, dict):
        focus = {
            str(area): FocusAreaAnalysis(
                summary=str(item.get("summary", "")),
                findings=_str_list(item.get("findings")),
                best_practices=_str_list(item.get("best_practices")),
            )
            for area, item in raw_focus.items()
            if isinstance(item, dict)
        }

    return Synthesis(
        summary=str(parsed.get("summary") or "No summary provided"),
        key_findings=_str_list(parsed.get("key_findings")),
        themes=_str_list(parsed.get("themes")),
        focus_analysis=focus,
        contradictions=_str_list(parsed.get("contradictions")),
        recommendations=_str_list(parsed.get("recommendations")),
        method=method,
    )


class DirectSynthesizer(Synthesizer):
    """Synthesize inline with an OpenAI chat model."""

    method = "direct"

    def __init__(self, model: Optional[str] = None, client: Optional[openai.OpenAI] = None):
        self.model = model or get_synthesis_model()
        self.client = client

    def _client(self) -> openai.OpenAI:
        if self.client is None:
            self.client = openai.OpenAI()
        return self.client

    @retry(
        retry=retry_if_exception_type((openai.RateLimitError, openai.APIConnectionError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=8),
        reraise=True,
    )
    def _call_llm(self, prompt: str, max_tokens: int) -> str:
        response = self._client().chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=0,
        )
        return (response.choices[0].message.content or "").strip()

    def synthesize(self, topic, contents, qualities, depth="intermediate", focus_areas=None):
        prompt = build_direct_prompt(topic, contents, qualities, depth, focus_areas)
        try:
            text = self._call_llm(prompt, MAX_TOKENS[depth])
        except openai.OpenAIError as e:
            raise SynthesisUnavailableError(f"{self.model} synthesis failed: {e}") from e
        return parse_synthesis_response(text, method=self.method)


def make_synthesizer(mode: Optional[str] = None) -> Synthesizer:
    """Pick the synthesis strategy once, from ``mode`` or ``SYNTHESIS_MODE``."""
    mode = (mode or get_synthesis_mode()).strip().lower()
    if mode == "direct":
        if get_openai_key() is None:
            logger.warning("SYNTHESIS_MODE=direct but OPENAI_API_KEY is not set; using agent synthesis")
            return AgentSynthesizer()
        return DirectSynthesizer()
    if mode == "basic":
        return BasicSynthesizer()
    if mode == "agent":
        return AgentSynthesizer()
    raise ValueError(f"Unknown synthesis mode: {mode!r}. Use 'agent', 'direct' or 'basic'.")
