"""Command-line interface for Lore Catalog."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from lore_catalog import __version__

console = Console()


def _open_store():
    from lore_catalog.config import get_settings
    from lore_catalog.errors import ConfigurationError
    from lore_catalog.store import get_store

    backend = get_settings().store_backend
    if backend == "memory":
        console.print("[red]✗[/red] The memory store backend is for tests only; set LORE_STORE_BACKEND=neo4j")
        raise SystemExit(1)

    try:
        return get_store(backend)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool) -> None:
    """Lore Catalog - Turn story documents into a catalogued knowledge base."""
    from lore_catalog.config import get_settings
    from lore_catalog.log import configure_logging

    level = logging.DEBUG if verbose else get_settings().log_level
    configure_logging(level, console=console)


@main.command()
def status() -> None:
    """Check system status (knowledge store, language model)."""
    from lore_catalog.config import get_settings
    from lore_catalog.llm import LLMClient
    from lore_catalog.store.connection import check_neo4j_connection

    console.print("[bold]Lore Catalog Status[/bold]\n")

    settings = get_settings()
    console.print(f"Store backend: {settings.store_backend}")
    if settings.store_backend == "neo4j":
        console.print(f"Neo4j URI: {settings.neo4j_uri}")
        if check_neo4j_connection():
            console.print("[green]✓[/green] Neo4j connected")
        else:
            console.print("[red]✗[/red] Neo4j not reachable")

    llm = LLMClient()
    console.print(f"LLM: {llm.provider} ({llm.model})")
    if llm.is_available:
        console.print("[green]✓[/green] Language model available")
    else:
        console.print("[red]✗[/red] Language model not available")


# ============================================================================
# World Commands
# ============================================================================

@main.group()
def world() -> None:
    """World (container) commands."""
    pass


@world.command(name="add")
@click.argument("name")
@click.option("--prefix", "-p", help="Explicit 2-5 letter code prefix")
@click.option("--universe", "-u", "hierarchy_id", help="Universe the world belongs to")
@click.option("--owner", help="Owner id")
@click.option("--order", type=int, default=0, help="Display order")
@click.option("--episodes", is_flag=True, help="World is split into numbered episodes")
def world_add(name: str, prefix: str | None, hierarchy_id: str | None, owner: str | None, order: int, episodes: bool) -> None:
    """Create a world."""
    from lore_catalog.catalog.codes import container_prefix
    from lore_catalog.models import Container

    store = _open_store()
    container = store.save_container(Container(
        name=name,
        prefix=prefix,
        order=order,
        has_episodes=episodes,
        hierarchy_id=hierarchy_id,
        owner_id=owner,
    ))
    console.print(f"[green]✓[/green] Created world [bold]{name}[/bold] ({container.id})")
    console.print(f"  Code prefix: {container_prefix(container)}")


@world.command(name="list")
@click.option("--universe", "-u", "hierarchy_id", help="Only worlds of this universe")
@click.option("--owner", help="Only worlds of this owner")
def world_list(hierarchy_id: str | None, owner: str | None) -> None:
    """List worlds."""
    from lore_catalog.catalog.codes import container_prefix

    store = _open_store()
    containers = store.list_containers(hierarchy_id=hierarchy_id, owner_id=owner)
    if not containers:
        console.print("[yellow]No worlds found[/yellow]")
        return

    table = Table(title="Worlds")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Prefix")
    table.add_column("Universe")
    table.add_column("Episodes")
    for c in containers:
        table.add_row(c.id, c.name, container_prefix(c), c.hierarchy_id or "-", "yes" if c.has_episodes else "no")
    console.print(table)


# ============================================================================
# Ingestion
# ============================================================================

@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--world", "-w", "world_id", required=True, help="World id to ingest into")
@click.option("--episode", "-e", help="Episode number (enables catalog codes)")
@click.option("--owner", help="Owner id for new entries")
@click.option("--types", help="Comma-separated entry types to extract")
@click.option("--types-file", type=click.Path(exists=True), help="JSON file of per-type extraction instructions")
@click.option("--output", "-o", type=click.Path(), help="Output file for the report (JSON)")
def ingest(
    path: str,
    world_id: str,
    episode: str | None,
    owner: str | None,
    types: str | None,
    types_file: str | None,
    output: str | None,
) -> None:
    """Extract entries from a text file and save them into a world.

    Types listed in --types-file are extracted with their descriptions as
    instructions; --types, when given, still decides which types are allowed.
    """
    from lore_catalog.errors import ConfigurationError
    from lore_catalog.extract.extractor import load_type_descriptions
    from lore_catalog.ingest.loader import load_document
    from lore_catalog.ingest.splitter import split_into_paragraphs
    from lore_catalog.pipeline import IngestionPipeline

    file_path = Path(path)
    console.print(f"[bold]Ingesting:[/bold] {file_path.name}")

    with console.status("Loading document..."):
        text = load_document(file_path)
    console.print(f"[green]✓[/green] Loaded {len(text):,} characters, {len(split_into_paragraphs(text)):,} paragraphs")

    type_descriptions = None
    if types_file:
        try:
            type_descriptions = load_type_descriptions(types_file)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--types-file")

    allowed_types = [t.strip().lower() for t in types.split(",") if t.strip()] if types else None
    if allowed_types is None and type_descriptions:
        allowed_types = list(type_descriptions)

    store = _open_store()

    pipeline = IngestionPipeline(store)
    try:
        with console.status("Working...") as spinner:
            pipeline.progress = lambda msg: spinner.update(msg)
            report = pipeline.ingest(
                text,
                world_id,
                sub_number=episode,
                owner_id=owner,
                allowed_types=allowed_types,
                type_descriptions=type_descriptions,
            )
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1)

    console.print(f"[green]✓[/green] Extracted {report.extracted} entries ({report.unique} unique)")
    console.print(f"[green]✓[/green] Saved {len(report.save.saved)}: {report.save.created} new, {report.save.merged} merged")

    if report.save.saved:
        table = Table(title="Saved entries")
        table.add_column("Title", style="cyan")
        table.add_column("Code")
        table.add_column("Status")
        for s in report.save.saved[:30]:
            table.add_row(s.title, s.code or "-", "new" if s.created else "merged")
        console.print(table)

    if not report.save.ok:
        console.print(f"[red]✗[/red] Stopped at '{report.save.failed_title}': {report.save.error}")

    if output:
        Path(output).write_text(json.dumps(report.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"\n[dim]Report saved to {output}[/dim]")

    if not report.save.ok:
        raise SystemExit(1)


# ============================================================================
# Retrieval & Consistency
# ============================================================================

@main.command()
@click.argument("query")
@click.option("--universe", "-u", "hierarchy_id", help="Restrict to one universe")
@click.option("--owner", help="Restrict to one owner")
@click.option("--limit", "-l", type=int, help="Maximum results")
def search(query: str, hierarchy_id: str | None, owner: str | None, limit: int | None) -> None:
    """Search catalogued entries."""
    from lore_catalog.retrieval import Retriever, extract_keyword

    keyword = extract_keyword(query)
    if keyword is None:
        console.print("[yellow]Query has no searchable keyword[/yellow]")
        return

    store = _open_store()
    results = Retriever(store).search(query, hierarchy_id=hierarchy_id, owner_id=owner, limit=limit)
    console.print(f"[bold]Keyword:[/bold] {keyword} ({len(results)} results)\n")
    for r in results:
        console.print(f"[cyan]{r.title}[/cyan] [dim]({r.type})[/dim]")
        console.print(f"  {r.content[:200]}{'...' if len(r.content) > 200 else ''}\n")


@main.command()
@click.argument("text")
@click.option("--universe", "-u", "hierarchy_id", help="Restrict facts to one universe")
@click.option("--owner", help="Restrict facts to one owner")
def check(text: str, hierarchy_id: str | None, owner: str | None) -> None:
    """Check proposed lore for contradictions with the catalog."""
    from lore_catalog.consistency import ConsistencyChecker

    store = _open_store()
    with console.status("Checking consistency..."):
        report = ConsistencyChecker(store).check(text, hierarchy_id=hierarchy_id, owner_id=owner)

    if report.is_consistent:
        console.print("[green]✓[/green] No contradictions found")
    else:
        console.print("[red]✗[/red] Possible contradictions")
    console.print(f"\n{report.analysis}")
    if report.facts or report.hard_facts:
        console.print(f"\n[dim]Checked against {len(report.facts)} facts, {len(report.hard_facts)} hard facts[/dim]")


@main.command()
@click.argument("question")
@click.option("--universe", "-u", "hierarchy_id", help="Restrict lore to one universe")
@click.option("--owner", help="Restrict lore to one owner")
def chat(question: str, hierarchy_id: str | None, owner: str | None) -> None:
    """Ask a question and stream an answer grounded in the catalog."""
    from lore_catalog.chat import LoreChat

    store = _open_store()
    for token in LoreChat(store).ask(question, hierarchy_id=hierarchy_id, owner_id=owner):
        console.print(token, end="", markup=False, highlight=False)
    console.print()


# ============================================================================
# Reconciliation
# ============================================================================

@main.command()
@click.option("--threshold", "-t", type=float, help="Minimum title similarity (0-1)")
@click.option("--owner", help="Only pairs where both entries belong to this owner")
def duplicates(threshold: float | None, owner: str | None) -> None:
    """List probable duplicate entries."""
    from lore_catalog.config import get_settings
    from lore_catalog.reconcile import find_duplicates

    store = _open_store()
    threshold = threshold if threshold is not None else get_settings().duplicate_threshold
    pairs = find_duplicates(store, threshold=threshold, owner_id=owner)
    if not pairs:
        console.print("[green]✓[/green] No probable duplicates")
        return

    table = Table(title=f"Probable duplicates (threshold {threshold})")
    table.add_column("Similarity", justify="right")
    table.add_column("A", style="cyan")
    table.add_column("B", style="cyan")
    table.add_column("IDs", style="dim")
    for p in pairs:
        table.add_row(f"{p.similarity:.2f}", p.title_a, p.title_b, f"{p.id_a} / {p.id_b}")
    console.print(table)


@main.command(name="reconcile")
@click.argument("winner")
@click.argument("loser")
@click.argument("merged_json", type=click.Path(exists=True))
def reconcile_cmd(winner: str, loser: str, merged_json: str) -> None:
    """Merge LOSER into WINNER using the record in MERGED_JSON."""
    from lore_catalog.errors import ReconciliationError
    from lore_catalog.reconcile import reconcile

    merged = json.loads(Path(merged_json).read_text(encoding="utf-8"))
    store = _open_store()
    try:
        result = reconcile(store, winner, loser, merged)
    except ReconciliationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1)

    console.print(f"[green]✓[/green] Merged into [bold]{result.winner.title}[/bold]")
    console.print(f"  Codes moved: {result.codes_moved}")
    console.print(f"  Relations moved: {result.relations_moved}")


@main.command(name="timeline")
@click.option("--world", "-w", "world_id", help="Only events of this world")
@click.option("--layer", "-l", help="Only events of this temporal layer")
@click.option("--owner", help="Only events of this owner")
def timeline_cmd(world_id: str | None, layer: str | None, owner: str | None) -> None:
    """List events in chronological order."""
    from lore_catalog.timeline import timeline

    store = _open_store()
    events = timeline(store, world_id=world_id, layer=layer, owner_id=owner)
    if not events:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title="Timeline")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Layer")
    table.add_column("Event", style="cyan")
    table.add_column("When", style="dim")
    for e in events:
        table.add_row(
            e.start_date or "?",
            e.end_date or "-",
            e.temporal_layer.value,
            e.title,
            e.date_description or "",
        )
    console.print(table)


@main.command()
@click.argument("entry_id")
def codes(entry_id: str) -> None:
    """Show the catalog codes of an entry."""
    store = _open_store()
    entry = store.get_entry(entry_id)
    if entry is None:
        console.print(f"[red]✗[/red] Entry {entry_id} not found")
        raise SystemExit(1)

    console.print(f"[bold]{entry.title}[/bold] [dim]({entry.type})[/dim]")
    found = store.codes_for_entry(entry_id)
    if not found:
        console.print("  [dim]No codes[/dim]")
    for c in sorted(found, key=lambda c: c.code):
        console.print(f"  {c.code}")


if __name__ == "__main__":
    main()
