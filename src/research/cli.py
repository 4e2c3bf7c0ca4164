"""CLI entry point for the research tool."""

from __future__ import annotations

import json
import logging
from typing import Optional

import click
from rich.console import Console

from research.config import PROVIDERS, SYNTHESIS_MODES
from research.models import DEPTHS

console = Console()


@click.group()
@click.version_option(package_name="research-cli")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline progress to stderr.")
def cli(verbose: bool):
    """research - Search the web, rank sources, and synthesize topic reports."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# research env
# ---------------------------------------------------------------------------


@cli.group(invoke_without_command=True)
@click.pass_context
def env(ctx):
    """Show or configure API keys.

    Run without arguments to see current status.
    Use `research env set KEY value` to save a key to ~/.research/.env.
    """
    if ctx.invoked_subcommand is not None:
        return

    from research.config import PERSISTENT_ENV, check_env

    statuses = check_env()
    console.print("API Key Status:")
    console.print()
    for var, is_set, info in statuses:
        status = "[green]set[/green]" if is_set else "[red]not set[/red]"
        console.print(f"  {var}: {status}")
        console.print(f"    {info['description']}")
        console.print(f"    Used by: {', '.join(info['required_by'])}", style="dim")
        console.print()

    console.print(f"Config file: {PERSISTENT_ENV}", style="dim")

    if not all(is_set for _, is_set, _ in statuses):
        console.print(
            "Tip: Run `research env set KEY value` to save a key persistently.",
            style="dim",
        )


@env.command("set")
@click.argument("key")
@click.argument("value")
def env_set(key: str, value: str):
    """Save an API key or setting to ~/.research/.env.

    KEY: an API key name (e.g. SERPER_API_KEY) or a setting (e.g. SEARCH_PROVIDER)
    VALUE: the value to store
    """
    from research.config import VALID_KEYS, save_key

    key = key.upper()
    if key not in VALID_KEYS:
        console.print(f"[red]Unknown key: {key}[/red]")
        console.print(f"Valid keys: {', '.join(sorted(VALID_KEYS))}")
        raise SystemExit(1)

    path = save_key(key, value)
    console.print(f"Saved {key} to {path}")


# ---------------------------------------------------------------------------
# research search
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@click.option("--num", "-n", default=10, help="Number of results to request.")
@click.option("--provider", "-p", type=click.Choice(PROVIDERS), default=None,
              help="Search provider (default: SEARCH_PROVIDER or google).")
@click.option("--site", default=None, help="Restrict results to one domain.")
@click.option("--date-restrict", default=None, help="Recency filter, e.g. 'd7', 'm6', 'y1'.")
def search(query: str, num: int, provider: Optional[str], site: Optional[str], date_restrict: Optional[str]):
    """Search, deduplicate and rank results by source quality.

    QUERY: the search query string
    """
    from research.dedup import deduplicate
    from research.errors import ProviderError
    from research.providers.base import SearchFilters
    from research.providers.factory import create_provider
    from research.quality import rank
    from research.renderer import render_search_results

    try:
        backend = create_provider(provider)
        filters = SearchFilters(site=site, date_restrict=date_restrict)
        response = backend.search(query, num, filters)
        dedup = deduplicate(response.results)
        render_search_results(
            rank(dedup.deduplicated),
            source=backend.info().display_name,
            duplicates_removed=dedup.duplicates_removed,
        )
    except (ProviderError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# research browse
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("url")
@click.option(
    "--backend",
    "-b",
    default="jina",
    type=click.Choice(["jina", "serper"]),
    help="Content extraction backend (default: jina).",
)
@click.option("--timeout", "-t", default=30, help="Request timeout in seconds.")
def browse(url: str, backend: str, timeout: int):
    """Fetch and display webpage content.

    URL: the webpage URL to browse
    """
    import httpx

    from research.extract import browse as do_browse
    from research.renderer import render_browse_result

    try:
        result = do_browse(url, backend=backend, timeout=timeout)
        render_browse_result(result)
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# research topic
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("topic")
@click.option("--depth", "-d", type=click.Choice(DEPTHS), default="intermediate",
              help="Research depth (default: intermediate).")
@click.option("--num-sources", "-n", type=click.IntRange(1, 10), default=None,
              help="Sources to keep (default: 3/5/8 by depth).")
@click.option("--focus", "-f", "focus_areas", multiple=True,
              help="Focus area; repeat for several.")
@click.option("--provider", "-p", type=click.Choice(PROVIDERS), default=None,
              help="Search provider (default: SEARCH_PROVIDER or google).")
@click.option("--backend", "-b", type=click.Choice(["jina", "serper"]), default="jina",
              help="Content extraction backend (default: jina).")
@click.option("--synthesis", "-s", type=click.Choice(SYNTHESIS_MODES), default=None,
              help="Synthesis mode (default: SYNTHESIS_MODE or agent).")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
def topic(
    topic: str,
    depth: str,
    num_sources: Optional[int],
    focus_areas: tuple[str, ...],
    provider: Optional[str],
    backend: str,
    synthesis: Optional[str],
    as_json: bool,
):
    """Research a topic across several searches and synthesize a report.

    TOPIC: what to research
    """
    from research.errors import ProviderError
    from research.extract import ContentExtractor
    from research.orchestrator import ResearchOrchestrator
    from research.providers.factory import create_provider
    from research.renderer import render_error, render_report
    from research.synthesis import make_synthesizer

    try:
        orchestrator = ResearchOrchestrator(
            create_provider(provider),
            ContentExtractor(backend),
            make_synthesizer(synthesis),
        )
    except (ProviderError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    outcome = orchestrator.research(
        topic, depth=depth, num_sources=num_sources, focus_areas=list(focus_areas)
    )

    if as_json:
        payload = outcome.report.to_dict() if outcome.ok else {"error": outcome.error.to_dict()}
        click.echo(json.dumps(payload, indent=2))
    elif outcome.ok:
        render_report(outcome.report)
    else:
        render_error(outcome.error)

    if not outcome.ok:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# research dedupe
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def dedupe(path: str):
    """Deduplicate and rank a JSON list of search results, then show duplicate groups.

    PATH: JSON file holding a list of {title, link, snippet} objects
    """
    from research.dedup import deduplicate, group_duplicates
    from research.models import SearchResult
    from research.quality import rank
    from research.renderer import render_duplicate_groups, render_search_results

    try:
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError("expected a JSON list of results")
        results = [SearchResult.from_dict(item) for item in data]
    except (OSError, ValueError, AttributeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    dedup = deduplicate(results)
    render_search_results(rank(dedup.deduplicated), duplicates_removed=dedup.duplicates_removed)
    render_duplicate_groups(group_duplicates(results))
