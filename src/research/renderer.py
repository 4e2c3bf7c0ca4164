"""Rich terminal renderer for search results, research reports and errors."""

from __future__ import annotations

import os
import uuid

from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

from research.errors import ResearchError
from research.models import ExtractedContent, ResearchReport, SearchResult

console = Console()

# Set RESEARCH_HASH_IDS=1 to use deterministic hash-based reference IDs
# (8-char UUID5 from URL) instead of sequential r1, r2, etc.
_USE_HASH_IDS = os.environ.get("RESEARCH_HASH_IDS", "") == "1"

SNIPPET_CHARS = 300


def _url_to_ref_id(url: str) -> str:
    """Deterministic short reference ID from a URL (8-char UUID5 prefix)."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, url))[:8]


def _make_ref_id(url: str, fallback_index: int, prefix: str = "r") -> str:
    if _USE_HASH_IDS and url:
        return _url_to_ref_id(url)
    return f"{prefix}{fallback_index}"


def _clip(text: str, limit: int = SNIPPET_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def render_search_results(
    results: list[SearchResult],
    *,
    source: str = "",
    duplicates_removed: int = 0,
) -> None:
    """Render ranked search results with reference IDs and scores."""
    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    header = f"Found {len(results)} results"
    if source:
        header += f" from {source}"
    if duplicates_removed:
        header += f" ({duplicates_removed} duplicates removed)"
    console.print(header)
    console.print()

    for i, r in enumerate(results, 1):
        ref = _make_ref_id(r.link, i)
        title_line = Text()
        title_line.append(f"[{ref}] ", style="bold cyan")
        title_line.append(r.title or "(untitled)", style="bold")
        console.print(title_line)

        if r.link:
            console.print(f"     {r.link}", style="dim")

        meta_parts = []
        if r.source_type is not None:
            meta_parts.append(r.source_type.value)
        if r.quality_score is not None:
            meta_parts.append(f"quality {r.quality_score:.2f}")
        if r.authority is not None:
            meta_parts.append(f"authority {r.authority:.2f}")
        if r.category:
            meta_parts.append(r.category)
        if meta_parts:
            console.print(f"     {' | '.join(meta_parts)}", style="dim")

        if r.snippet:
            console.print(f"     {_clip(r.snippet)}")

        if r.link:
            console.print(f"  > Use `research browse {r.link}` to read full content", style="dim italic")
        console.print()


def render_duplicate_groups(groups: list[list[SearchResult]]) -> None:
    """Show clusters of near-duplicate results (only groups with >1 member)."""
    clusters = [g for g in groups if len(g) > 1]
    if not clusters:
        console.print("[green]No duplicate groups found.[/green]")
        return
    console.print(f"{len(clusters)} duplicate groups")
    console.print()
    for i, group in enumerate(clusters, 1):
        console.print(f"Group {i} ({len(group)} results)", style="bold")
        for r in group:
            console.print(f"     {r.link}", style="dim")
        console.print()


def report_markdown(report: ResearchReport) -> str:
    """Format a research report as a markdown document."""
    lines = [f"# Research: {report.topic}", ""]
    lines.append(f"**Research Depth:** {report.depth_level}  ")
    lines.append(
        f"**Sources Analyzed:** {report.sources_analyzed} "
        f"(retrieved {report.sources_retrieved}, {report.duplicates_removed} duplicates removed)  "
    )
    if report.focus_areas:
        lines.append(f"**Focus Areas:** {', '.join(report.focus_areas)}  ")
    lines.append(f"**Synthesis:** {report.synthesis_method}")
    lines += ["", "## Summary", "", report.research_summary, ""]

    if report.key_findings:
        lines += ["## Key Findings", ""]
        lines += [f"{i}. {f}" for i, f in enumerate(report.key_findings, 1)]
        lines.append("")
    if report.themes:
        lines += ["## Themes", ""]
        lines += [f"- {t}" for t in report.themes]
        lines.append("")
    if report.focus_area_analysis:
        lines += ["## Focus Area Analysis", ""]
        for area, analysis in report.focus_area_analysis.items():
            lines += [f"### {area}", "", analysis.summary, ""]
            lines += [f"- {f}" for f in analysis.findings]
            if analysis.best_practices:
                lines += ["", "**Best practices:**"]
                lines += [f"- {p}" for p in analysis.best_practices]
            lines.append("")
    if report.contradictions:
        lines += ["## Contradictions", ""]
        lines += [f"- {c}" for c in report.contradictions]
        lines.append("")
    if report.recommendations:
        lines += ["## Recommendations", ""]
        lines += [f"- {r}" for r in report.recommendations]
        lines.append("")

    m = report.quality_metrics
    lines += [
        "## Source Quality",
        "",
        f"- Diversity: {m.source_diversity:.2f}",
        f"- Average authority: {m.average_authority:.2f}",
        f"- Freshness: {m.content_freshness:.2f}",
        "",
        "## Sources",
        "",
    ]
    for i, s in enumerate(report.sources, 1):
        meta = f"{s.type.value}, quality {s.quality_score:.2f}"
        if s.publication_date:
            meta += f", published {s.publication_date}"
        lines.append(f"{i}. [{s.title or s.url}]({s.url}) ({meta})")
    if report.warnings:
        lines += ["", "## Warnings", ""]
        lines += [f"- {w}" for w in report.warnings]
    return "\n".join(lines)


def render_report(report: ResearchReport) -> None:
    console.print(Markdown(report_markdown(report)))


def render_error(error: ResearchError) -> None:
    console.print(f"[red]Error ({error.kind.value}): {error.message}[/red]")
    if error.suggestions:
        console.print()
        console.print("Suggestions:")
        for s in error.suggestions:
            console.print(f"  - {s}")
    if error.alternative_queries:
        console.print()
        console.print("Try instead:")
        for q in error.alternative_queries:
            console.print(f'  > research topic "{q}"', style="dim italic")


def render_browse_result(result: ExtractedContent) -> None:
    """Render browsed webpage content."""
    console.print(f"Fetched content from {result.url} ({result.word_count:,} words)", style="bold")
    if result.title:
        console.print(result.title, style="bold")
    console.print()
    console.print(result.content)
