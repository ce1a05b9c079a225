"""DialogLoom CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from dialogloom.config import ConfigError, ProjectConfig, load_config, write_default_config
from dialogloom.generation import (
    GenerateMode,
    GenerationDispatcher,
    NodeTypeRegistry,
    RegenerationOrchestrator,
)
from dialogloom.graph import (
    ActiveView,
    GraphFileError,
    GraphIntegrityError,
    GraphView,
    NodeStatus,
    SubgraphNavigator,
    build_context,
    find_root_nodes,
    find_siblings,
    load_graph,
    regeneration_plan,
    save_graph,
)
from dialogloom.observability import close_file_logging, configure_logging, get_logger
from dialogloom.providers import ProviderError

if TYPE_CHECKING:
    from dialogloom.generation import BulkRunResult
    from dialogloom.providers import GenerationService

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="dloom",
    help="DialogLoom: AI-assisted regeneration of dialog graphs.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_config_path: Path | None = None

STATUS_STYLES = {
    NodeStatus.IDLE: "[green]idle[/green]",
    NodeStatus.GENERATING: "[yellow]generating[/yellow]",
    NodeStatus.ERROR: "[red]error[/red]",
    NodeStatus.TIMEOUT: "[magenta]timeout[/magenta]",
}


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to logs/debug.jsonl next to the graph file.",
        ),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to dialogloom.yaml or the directory holding it.",
            envvar="DLOOM_CONFIG",
        ),
    ] = None,
) -> None:
    """DialogLoom: AI-assisted regeneration of dialog graphs."""
    global _verbose, _log_enabled, _config_path
    _verbose = verbose
    _log_enabled = log_
    _config_path = config

    # File logging is configured later, once the graph file is known
    configure_logging(verbosity=verbose)


def _configure_file_logging(graph: Path) -> None:
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=graph.parent)
        atexit.register(close_file_logging)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    return typer.Exit(1)


def _load_config() -> ProjectConfig:
    try:
        return load_config(_config_path)
    except ConfigError as e:
        raise _fail(str(e)) from e


def _load_graph(graph: Path) -> GraphView:
    try:
        return load_graph(graph)
    except GraphFileError as e:
        raise _fail(str(e)) from e
    except GraphIntegrityError as e:
        raise _fail(e.to_feedback()) from e


def _open_view(graph_view: GraphView, subgraph: list[str] | None) -> ActiveView:
    """Wrap the root graph, descending into the given container nodes."""
    navigator = SubgraphNavigator(graph_view)
    for node_id in subgraph or []:
        try:
            navigator.enter_subgraph(node_id)
        except GraphIntegrityError as e:
            raise _fail(e.to_feedback()) from e
    return ActiveView(graph_view, navigator)


def _close_view(view: ActiveView) -> None:
    navigator = view.navigator
    if navigator is not None:
        navigator.exit_to_main()


def _create_service(config: ProjectConfig, provider_override: str | None) -> GenerationService:
    """Build the LangChain-backed generation service for the configured provider."""
    from dialogloom.providers import (
        LangChainGenerationService,
        create_chat_model,
        parse_provider_string,
    )

    provider_string = config.get_provider(provider_override)
    try:
        provider, model = parse_provider_string(provider_string)
        chat_model = create_chat_model(provider, model)
    except ProviderError as e:
        raise _fail(str(e)) from e

    log.info("provider_selected", provider=provider, model=model)
    return LangChainGenerationService(
        chat_model,
        request_timeout=config.generation.request_timeout,
        model_factory=lambda name: create_chat_model(provider, name),
    )


class RichProgressReporter:
    """Progress reporter rendering to a rich progress bar."""

    def __init__(self, progress: Progress, description: str) -> None:
        self._progress = progress
        self._description = description
        self._task: TaskID | None = None

    def progress(self, percent: int) -> None:
        if self._task is None:
            self._task = self._progress.add_task(self._description, total=100)
        self._progress.update(self._task, completed=percent)

    def message(self, text: str) -> None:
        self._progress.console.print(f"[dim]{escape(text)}[/dim]")

    def success(self, text: str) -> None:
        self._progress.console.print(f"[green]✓[/green] {escape(text)}")

    def failure(self, text: str) -> None:
        self._progress.console.print(f"[red]✗[/red] {escape(text)}")


def _progress_bar() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    )


def _build_orchestrator(
    view: ActiveView,
    config: ProjectConfig,
    provider: str | None,
    reporter: RichProgressReporter,
) -> RegenerationOrchestrator:
    service = _create_service(config, provider)
    generation = config.generation
    return RegenerationOrchestrator(
        view,
        GenerationDispatcher(service),
        registry=NodeTypeRegistry(),
        progress=reporter,
        flush_interval=generation.flush_interval,
        inter_node_delay=generation.inter_node_delay,
        context_char_limit=generation.context_char_limit,
        context_max_depth=generation.context_max_depth,
    )


def _save(view: ActiveView, graph: Path, output: Path | None) -> None:
    _close_view(view)
    target = output or graph
    save_graph(view.root, target)
    console.print(f"  Saved: [cyan]{target}[/cyan]")


GraphArg = Annotated[Path, typer.Argument(help="Graph JSON file.")]
NodeArg = Annotated[str, typer.Argument(help="Node id.")]
ProviderOpt = Annotated[
    str | None,
    typer.Option("--provider", help="Provider string, e.g. ollama/qwen3:8b (overrides config)."),
]
OutputOpt = Annotated[
    Path | None,
    typer.Option("--output", "-o", help="Write the updated graph here instead of in place."),
]
SubgraphOpt = Annotated[
    list[str] | None,
    typer.Option("--subgraph", help="Container node to work inside; repeat to nest."),
]


@app.command()
def version() -> None:
    """Show version information."""
    from dialogloom import __version__

    console.print(f"DialogLoom v{__version__}")


@app.command()
def init(
    directory: Annotated[Path, typer.Argument(help="Directory for dialogloom.yaml.")] = Path(),
    name: Annotated[str, typer.Option("--name", help="Project name.")] = "dialogs",
    provider: ProviderOpt = None,
) -> None:
    """Write a default dialogloom.yaml."""
    try:
        path = write_default_config(directory, name, provider)
    except ConfigError as e:
        raise _fail(str(e)) from e
    console.print(f"[green]✓[/green] Created [cyan]{path}[/cyan]")


@app.command()
def context(
    graph: GraphArg,
    node: NodeArg,
    isolate: Annotated[
        bool, typer.Option("--isolate", help="Ignore connections of the node.")
    ] = False,
    serialized: Annotated[
        bool, typer.Option("--serialized", help="Print the serialized context only.")
    ] = False,
    subgraph: SubgraphOpt = None,
) -> None:
    """Show the dialog context built for a node."""
    config = _load_config()
    view = _open_view(_load_graph(graph), subgraph)
    nodes, edges = view.nodes, view.edges

    dialog_context = build_context(
        node,
        nodes,
        edges,
        isolate=isolate,
        siblings=None if isolate else find_siblings(node, nodes, edges),
        max_depth=config.generation.context_max_depth,
        char_limit=config.generation.context_char_limit,
    )
    if dialog_context is None:
        raise _fail(f"Node '{node}' not found in {graph}")

    if serialized:
        typer.echo(dialog_context.serialized)
        return

    table = Table(title=f"Context: {node} ({dialog_context.current.type})")
    table.add_column("Role", style="cyan")
    table.add_column("Node", style="bold")
    table.add_column("Type", style="dim")
    table.add_column("Text")

    rows = [
        *(("previous", e) for e in dialog_context.previous),
        ("current", dialog_context.current),
        *(("next", e) for e in dialog_context.next),
        *(("sibling", e) for e in dialog_context.siblings),
    ]
    for role, entry in rows:
        table.add_row(role, entry.id, entry.type, escape(entry.text))

    console.print()
    console.print(table)
    if dialog_context.isolated:
        console.print("[dim]Isolated: connections ignored[/dim]")


@app.command()
def plan(
    graph: GraphArg,
    node: Annotated[
        str | None,
        typer.Argument(help="Start node id. Omit to list the nodes a dialog can start from."),
    ] = None,
    subgraph: SubgraphOpt = None,
) -> None:
    """Show the order in which regenerate would process nodes."""
    view = _open_view(_load_graph(graph), subgraph)
    if node is None:
        _print_start_nodes(view)
        return
    if view.get_node(node) is None:
        raise _fail(f"Node '{node}' not found in {graph}")

    table = Table(title=f"Regeneration plan from {node}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Node", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Status")

    for index, node_id in enumerate(regeneration_plan(node, view.edges), start=1):
        current = view.get_node(node_id)
        if current is None:
            table.add_row(str(index), node_id, "-", "[dim]missing[/dim]")
        else:
            table.add_row(str(index), node_id, current.type, STATUS_STYLES[current.status])

    console.print()
    console.print(table)


def _print_start_nodes(view: ActiveView) -> None:
    roots = find_root_nodes(view.nodes, view.edges)
    if not roots:
        console.print("[yellow]No start nodes: every node has an incoming edge.[/yellow]")
        return

    table = Table(title="Start nodes")
    table.add_column("Node", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Text")
    for root in roots:
        table.add_row(root.id, root.type, escape(root.text))

    console.print()
    console.print(table)


@app.command()
def generate(
    graph: GraphArg,
    node: NodeArg,
    mode: Annotated[
        GenerateMode,
        typer.Option("--mode", "-m", help="recreate, improve or custom."),
    ] = GenerateMode.RECREATE,
    prompt: Annotated[
        str | None, typer.Option("--prompt", help="Instruction for custom mode.")
    ] = None,
    system_prompt: Annotated[
        str | None, typer.Option("--system-prompt", help="System prompt for custom mode.")
    ] = None,
    isolate: Annotated[
        bool, typer.Option("--isolate", help="Ignore connections of the node.")
    ] = False,
    model_override: Annotated[
        str | None, typer.Option("--model", help="Model to use for this request.")
    ] = None,
    provider: ProviderOpt = None,
    output: OutputOpt = None,
    subgraph: SubgraphOpt = None,
) -> None:
    """Generate new text for a single node."""
    if mode is GenerateMode.REGENERATE_FROM_HERE:
        raise _fail("Use 'dloom regenerate' to regenerate from a node")
    if mode is GenerateMode.CUSTOM and not prompt:
        raise _fail("--prompt is required in custom mode")

    _configure_file_logging(graph)
    config = _load_config()
    view = _open_view(_load_graph(graph), subgraph)

    with _progress_bar() as progress:
        reporter = RichProgressReporter(progress, f"Generating {node}")
        orchestrator = _build_orchestrator(view, config, provider, reporter)
        result = asyncio.run(
            orchestrator.generate_node(
                node,
                mode,
                ignore_connections=isolate,
                prompt=prompt,
                system_prompt=system_prompt,
                model_override=model_override,
            )
        )

    if result.error is not None:
        raise typer.Exit(1)
    if result.ok:
        console.print()
        console.print(f"[bold]{node}[/bold]: {escape(result.text or '')}")
    _save(view, graph, output)
    if result.failure is not None:
        raise typer.Exit(1)


def _print_bulk_summary(result: BulkRunResult) -> None:
    console.print()
    console.print(f"  Plan: {len(result.plan)} nodes")
    console.print(f"  Regenerated: [green]{len(result.succeeded)}[/green]")
    if result.failed:
        console.print(f"  Failed: [red]{len(result.failed)}[/red]")
        for node_id, failure in result.failed.items():
            console.print(
                f"    [red]•[/red] {node_id} ({failure.kind}): {escape(failure.message)}"
            )
    if result.skipped:
        console.print(f"  Skipped containers: {', '.join(result.skipped)}")
    if result.missing_count:
        console.print(f"  Missing: [yellow]{result.missing_count}[/yellow]")
    console.print(f"  Duration: {result.duration_seconds:.1f}s")


@app.command()
def regenerate(
    graph: GraphArg,
    node: NodeArg,
    ignore_connections: Annotated[
        bool,
        typer.Option("--ignore-connections", help="Generate every node without context."),
    ] = False,
    provider: ProviderOpt = None,
    output: OutputOpt = None,
    subgraph: SubgraphOpt = None,
) -> None:
    """Regenerate a node and everything reachable from it."""
    _configure_file_logging(graph)
    config = _load_config()
    view = _open_view(_load_graph(graph), subgraph)
    if view.get_node(node) is None:
        raise _fail(f"Node '{node}' not found in {graph}")

    with _progress_bar() as progress:
        reporter = RichProgressReporter(progress, "Regenerating")
        orchestrator = _build_orchestrator(view, config, provider, reporter)
        result = asyncio.run(
            orchestrator.regenerate_from_here(node, ignore_connections=ignore_connections)
        )

    _print_bulk_summary(result)
    _save(view, graph, output)
    if result.failed:
        raise typer.Exit(1)


@app.command("fill-empty")
def fill_empty(
    graph: GraphArg,
    provider: ProviderOpt = None,
    output: OutputOpt = None,
    subgraph: SubgraphOpt = None,
) -> None:
    """Generate text for every node that has none."""
    _configure_file_logging(graph)
    config = _load_config()
    view = _open_view(_load_graph(graph), subgraph)

    with _progress_bar() as progress:
        reporter = RichProgressReporter(progress, "Filling empty nodes")
        orchestrator = _build_orchestrator(view, config, provider, reporter)
        results = asyncio.run(orchestrator.generate_empty_nodes())

    if not results:
        return
    failed = [r for r in results if r.failure is not None]
    console.print()
    console.print(f"  Filled: [green]{sum(1 for r in results if r.ok)}[/green] of {len(results)}")
    _save(view, graph, output)
    if failed:
        raise typer.Exit(1)


@app.command()
def models(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Ollama server URL (default: $OLLAMA_HOST)."),
    ] = None,
) -> None:
    """List models installed on an Ollama server."""
    from dialogloom.providers import list_ollama_models

    try:
        names = asyncio.run(list_ollama_models(host))
    except ProviderError as e:
        raise _fail(str(e)) from e

    if not names:
        console.print("[yellow]No models installed.[/yellow]")
        return
    for name in names:
        console.print(f"  {escape(name)}")


if __name__ == "__main__":
    app()
