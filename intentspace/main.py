"""
IntentSpace - CLI Entry Point
------------------------------
Exposes Typer commands for analysing a site and exploring the result.

Usage:
    python -m intentspace.main analyze https://example.com
    python -m intentspace.main analyze https://example.com --max-pages 10 --force
    python -m intentspace.main list
    python -m intentspace.main graph <graph_id>
    python -m intentspace.main node <graph_id> <node_id>
    python -m intentspace.main search <graph_id> "pricing plans"
"""
from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from intentspace.config import load_config
from intentspace.errors import IntentSpaceError
from intentspace.pipeline import AnalysisPipeline
from intentspace.schemas import AnalysisParams
from intentspace.search.engine import SearchEngine
from intentspace.storage.json_store import JsonGraphStore
from intentspace.utils.logger import configure_logging

app = typer.Typer(
    name="intentspace",
    help="IntentSpace - crawl a website and map its content into an intent graph",
    add_completion=False,
)
console = Console()

CONFIG_OPTION = typer.Option(
    "config/config.yaml", "--config", "-c", help="Path to the IntentSpace config YAML"
)


# --- Helpers ------------------------------------------------------------------

def _bootstrap(config_path: str) -> tuple[dict, JsonGraphStore]:
    load_dotenv()
    cfg = load_config(config_path)
    configure_logging(cfg.get("logging", {}))
    return cfg, JsonGraphStore.from_config(cfg.get("storage", {}))


def _fail(exc: IntentSpaceError) -> None:
    console.print(f"[red]{exc.__class__.__name__}:[/red] {exc.message}")
    raise typer.Exit(1)


# --- Commands -----------------------------------------------------------------

@app.command()
def analyze(
    url: str = typer.Argument(..., help="Seed URL of the site to analyse"),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Upper bound on kept pages"),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Link hops from the seed"),
    any_domain: bool = typer.Option(False, "--any-domain", help="Follow links to other hosts"),
    force: bool = typer.Option(False, "--force", help="Re-run even if a ready analysis exists"),
    config: str = CONFIG_OPTION,
) -> None:
    """
    Crawl, chunk, embed, cluster and link a website.

    \b
    Steps:
      1. Breadth-first crawl
      2. Word-window chunking
      3. Term-frequency embedding
      4. k-means clustering into intents
      5. Similarity edges
      6. Evidence snippets
    """
    cfg, store = _bootstrap(config)
    pipeline = AnalysisPipeline(cfg, store)
    defaults = pipeline.default_params()
    params = AnalysisParams(
        max_pages=max_pages if max_pages is not None else defaults.max_pages,
        max_depth=max_depth if max_depth is not None else defaults.max_depth,
        same_domain_only=not any_domain and defaults.same_domain_only,
        force_recompute=force,
    )

    console.print()
    console.print(
        Panel(
            "[bold cyan]IntentSpace[/bold cyan]\n"
            f"[white]Analysing {url}[/white]",
            box=box.DOUBLE_EDGE,
            expand=False,
        )
    )

    try:
        with console.status("[cyan]Crawling and clustering...[/cyan]"):
            result = asyncio.run(pipeline.run(url, params))
    except IntentSpaceError as exc:
        _fail(exc)

    console.print(
        Panel(
            "[bold green]Analysis ready[/bold green]\n\n"
            f"  Graph ID : {result.graph_id}\n"
            f"  Pages    : {result.pages_crawled:,}\n"
            f"  Chunks   : {result.chunks:,}\n"
            f"  Intents  : {result.intents:,}\n\n"
            f"Run: [bold]python -m intentspace.main graph {result.graph_id}[/bold]",
            box=box.DOUBLE_EDGE,
            border_style="green",
            expand=False,
        )
    )


@app.command("list")
def list_graphs(config: str = CONFIG_OPTION) -> None:
    """List stored analyses, oldest first."""
    _, store = _bootstrap(config)
    analyses = store.list_analyses()
    if not analyses:
        console.print("[yellow]No analyses yet.  Run: python -m intentspace.main analyze URL[/yellow]")
        return

    table = Table("Graph ID", "Source", "Status", "Pages", "Intents", "Created", box=box.SIMPLE)
    for a in analyses:
        colour = {"ready": "green", "error": "red"}.get(a.status.value, "yellow")
        table.add_row(
            a.id,
            a.source_url,
            f"[{colour}]{a.status.value}[/{colour}]",
            str(a.pages_crawled),
            str(a.intents_count),
            a.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def graph(
    graph_id: str = typer.Argument(..., help="Analysis / graph id"),
    json_out: bool = typer.Option(False, "--json", help="Print the graph as JSON"),
    config: str = CONFIG_OPTION,
) -> None:
    """Show the intents and edges of one analysis."""
    _, store = _bootstrap(config)
    try:
        analysis = store.get_analysis(graph_id)
        intents = store.get_intents(graph_id)
        edges = store.get_edges(graph_id)
    except IntentSpaceError as exc:
        _fail(exc)

    if json_out:
        payload = {
            "analysis": analysis.model_dump(mode="json"),
            "nodes": [i.model_dump(mode="json", exclude={"centroid_embedding"}) for i in intents],
            "edges": [e.model_dump(mode="json") for e in edges],
        }
        console.print_json(json.dumps(payload))
        return

    console.print(f"\n[bold]{analysis.source_url}[/bold]  [dim]{analysis.status.value}[/dim]")
    if analysis.error_message:
        console.print(f"[red]{analysis.error_message}[/red]")

    titles = {i.id: i.title for i in intents}
    table = Table("Node ID", "Title", "Size", "Keywords", box=box.SIMPLE, header_style="bold dim")
    for intent in intents:
        table.add_row(intent.id, intent.title, str(intent.size), ", ".join(intent.keywords))
    console.print(table)

    for edge in edges:
        console.print(
            f"  {titles.get(edge.source_intent_id, '?')} [dim]--{edge.weight:.2f}--[/dim] "
            f"{titles.get(edge.target_intent_id, '?')}"
        )


@app.command()
def node(
    graph_id: str = typer.Argument(..., help="Analysis / graph id"),
    node_id: str = typer.Argument(..., help="Intent id"),
    config: str = CONFIG_OPTION,
) -> None:
    """Show one intent with its evidence."""
    _, store = _bootstrap(config)
    try:
        intent = store.get_intent(graph_id, node_id)
        evidence = store.get_evidence(graph_id, intent_id=node_id)
    except IntentSpaceError as exc:
        _fail(exc)

    console.print(
        Panel(
            f"{intent.summary}\n\n"
            f"[dim]Keywords:[/dim] {', '.join(intent.keywords)}\n"
            f"[dim]Chunks:[/dim] {intent.size}",
            title=f"[bold]{intent.title}[/bold]",
            expand=True,
        )
    )
    for ev in evidence:
        console.print(f"[cyan]{ev.page_title}[/cyan] [dim]{ev.url}[/dim]\n  {ev.snippet}")


@app.command()
def search(
    graph_id: str = typer.Argument(..., help="Analysis / graph id"),
    query: str = typer.Argument(..., help="Free-text query"),
    top_k: int = typer.Option(5, "--top-k", help="Maximum number of results"),
    config: str = CONFIG_OPTION,
) -> None:
    """Rank the intents of one analysis against a query."""
    cfg, store = _bootstrap(config)
    engine = SearchEngine.from_config(cfg.get("search", {}), store)
    try:
        hits = engine.search(graph_id, query, top_k=top_k)
    except IntentSpaceError as exc:
        _fail(exc)

    if not hits:
        console.print("[yellow]No matching intents.[/yellow]")
        return

    table = Table("Score", "Title", "Keywords", "Evidence", box=box.SIMPLE, header_style="bold dim")
    for hit in hits:
        table.add_row(
            f"{hit.score:.2f}",
            hit.title,
            ", ".join(hit.keywords),
            "\n".join(e.url for e in hit.evidence),
        )
    console.print(table)


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
