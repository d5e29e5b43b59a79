"""
Main CLI interface for Topic Tree.

This module provides the Typer-based command-line interface with commands for:
- Extracting a topic tree from text
- Transcribing an audio file and extracting its topic tree
- Laying out a saved topic tree for a given expansion state
- Exploring a tree interactively by expanding and collapsing nodes
- Writing a project-scoped .env template
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip
import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.syntax import Syntax
from rich.table import Table

from .core.config import ConfigError, ensure_project_env, get_project_env_path, validate_config
from .core.engine import TopicTreeEngine
from .core.extraction import ExtractionError, TopicExtractor
from .core.progress import reporter
from .core.render import export_graph_json, graph_table, render_rich_tree
from .core.speech import SpeechError, SpeechProcessor
from .core.tree import TreeParseError, count_nodes, parse_topic_tree, tree_depth
from .core.types import ExtractionResult, LayoutGraph, TopicNode

app = typer.Typer(
    name="topic-tree",
    help="Topic Tree CLI - Turn text and recordings into expandable topic diagrams",
    no_args_is_help=True,
)

console = Console()


def _set_debug(debug: bool) -> None:
    # CLI flag always overrides .env
    if debug:
        os.environ["TT_DEBUG"] = "1"
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    elif os.environ.get("TT_DEBUG") != "1":
        os.environ["TT_DEBUG"] = "0"


def _copy_to_clipboard(text: str) -> None:
    try:
        pyperclip.copy(text)
        console.print("[dim]Copied to clipboard[/dim]")
    except pyperclip.PyperclipException as e:
        console.print(f"[yellow]Clipboard unavailable:[/yellow] {e}")


def _load_tree_file(path: str) -> TopicNode:
    tree_path = Path(path)
    if not tree_path.is_file():
        raise TreeParseError(f"Tree file not found: {path}")
    return parse_topic_tree(tree_path.read_text(encoding="utf-8"))


@app.command()
def extract(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Text to extract topics from"),
    file: Optional[str] = typer.Option(None, "--file", help="Path to file containing the text"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Run the validation pass on the drafted tree"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the topic tree JSON to this file"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    project_root: str = typer.Option(".", "--project-root", help="Project root for .topic_tree settings and debug logs"),
    debug: bool = typer.Option(False, "--debug", help="Enable detailed debug logging"),
):
    """
    Extract a hierarchical topic tree from text.

    Examples:
        topic-tree extract --text "Let's talk about cats going to space"
        topic-tree extract --file notes.txt --output tree.json
        topic-tree extract --file notes.txt --no-validate --format json
    """
    if text and file:
        console.print("[bold red]Error:[/bold red] Cannot specify both --text and --file options")
        sys.exit(1)
    if not text and not file:
        console.print("[bold red]Error:[/bold red] Must specify either --text or --file option")
        sys.exit(1)

    try:
        _set_debug(debug)
        with reporter.initialize(console, "Validating input…"):
            if file:
                file_path = Path(file)
                if not file_path.exists():
                    console.print(f"[bold red]Error:[/bold red] File not found: {file}")
                    sys.exit(1)
                text = file_path.read_text(encoding="utf-8")

            assert text is not None, "Text should not be None after validation"

            validate_config(project_root)
            result = TopicExtractor(project_root).extract_and_validate(text, validate=validate)
            reporter.complete_step()

        _display_extraction_result(result, output_format, output)

    except (ConfigError, ExtractionError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


@app.command()
def init(
    project_root: str = typer.Option(".", "--project-root", help="Directory to create .topic_tree/.env in"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing env file with the template"),
):
    """
    Create a project-scoped .topic_tree/.env template.

    Examples:
        topic-tree init
        topic-tree init --project-root ~/notes --overwrite
    """
    env_path = get_project_env_path(project_root)
    existed = env_path.exists()
    env_path = ensure_project_env(project_root, overwrite=overwrite)
    if existed and not overwrite:
        console.print(f"[yellow]Keeping existing env file:[/yellow] {env_path}")
    else:
        console.print(f"[green]Wrote env template:[/green] {env_path}")
    console.print("[dim]Set OPENAI_API_KEY there (and OPENAI_BASE_URL for OpenRouter).[/dim]")


@app.command("from-audio")
def from_audio(
    path: str = typer.Argument(..., help="Path to audio file"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Run the validation pass on the drafted tree"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the topic tree JSON to this file"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    project_root: str = typer.Option(".", "--project-root", help="Project root for .topic_tree settings and debug logs"),
    debug: bool = typer.Option(False, "--debug", help="Enable detailed debug logging"),
):
    """
    Transcribe an audio file, then extract its topic tree.

    Examples:
        topic-tree from-audio recording.wav
        topic-tree from-audio meeting.m4a --output tree.json
    """
    try:
        _set_debug(debug)
        with reporter.initialize(console, "Validating input…"):
            validate_config(project_root)

            reporter.step("Checking audio file…")
            audio_path = Path(path)
            if not audio_path.exists():
                console.print(f"[bold red]Error:[/bold red] Audio file not found: {path}")
                sys.exit(1)

            speech_processor = SpeechProcessor(project_root=project_root)
            if not speech_processor.validate_audio_format(path):
                console.print(f"[bold red]Error:[/bold red] Unsupported audio format: {audio_path.suffix}")
                sys.exit(1)

            audio_info = speech_processor.get_audio_info(path)
            console.print(f"[dim]Processing: {audio_info['name']} ({audio_info['size_mb']} MB)[/dim]")

            reporter.step("Transcribing audio…")
            transcript = speech_processor.transcribe_audio(path)
            console.print(f"[dim]Transcript ({len(transcript.text.split())} words, detected: {transcript.lang_hint}):[/dim]")
            console.print(Panel(transcript.text[:200] + "..." if len(transcript.text) > 200 else transcript.text))

            result = TopicExtractor(project_root).extract_and_validate(transcript.text, validate=validate)
            reporter.complete_step()

        _display_extraction_result(result, output_format, output)

    except (ConfigError, SpeechError, ExtractionError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


@app.command()
def layout(
    tree_file: str = typer.Argument(..., help="Path to a topic tree JSON file"),
    expand: Optional[List[str]] = typer.Option(None, "--expand", "-e", help="Node id to expand (repeatable)"),
    expand_all: bool = typer.Option(False, "--expand-all", help="Expand every node"),
    depth: int = typer.Option(0, "--depth", "-d", help="Expand all nodes down to this depth"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, table, json)"),
    copy: bool = typer.Option(False, "--copy", help="Copy the JSON graph to the clipboard"),
):
    """
    Print the positioned graph of a saved tree.

    Examples:
        topic-tree layout tree.json --expand cats --expand space
        topic-tree layout tree.json --depth 2 --format table
        topic-tree layout tree.json --expand-all --format json --copy
    """
    try:
        tree = _load_tree_file(tree_file)
    except TreeParseError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    engine = TopicTreeEngine()
    engine.initialize_tree(tree)
    if expand_all:
        engine.expand_all()
    elif depth > 0:
        engine.expand_to_depth(depth)

    for node_id in expand or []:
        if not engine.is_expanded(node_id) and not engine.toggle(node_id):
            console.print(f"[yellow]Ignoring --expand {node_id}: unknown id or no subtopics[/yellow]")

    _display_graph(engine.graph, output_format)
    if copy:
        _copy_to_clipboard(export_graph_json(engine.graph))


@app.command()
def explore(
    tree_file: str = typer.Argument(..., help="Path to a topic tree JSON file"),
):
    """
    Explore a tree interactively: type a node id to expand or collapse it.

    Commands at the prompt: a node id toggles it, 'all' expands everything,
    'none' collapses everything, 'q' quits.
    """
    try:
        tree = _load_tree_file(tree_file)
    except TreeParseError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[dim]{count_nodes(tree)} topics, {tree_depth(tree)} levels[/dim]")
    engine = TopicTreeEngine(on_change=lambda graph: console.print(render_rich_tree(graph)))
    engine.initialize_tree(tree)

    while True:
        command = Prompt.ask("[cyan]Node id[/cyan] (all/none/q)", console=console, default="q").strip()
        if command in ("q", "quit", "exit"):
            break
        if command == "all":
            engine.expand_all()
        elif command == "none":
            engine.collapse_all()
        elif not engine.toggle(command):
            console.print(f"[yellow]Nothing to toggle for '{command}'[/yellow]")


def _display_graph(graph: LayoutGraph, output_format: str) -> None:
    if output_format == "json":
        console.print(export_graph_json(graph), markup=False, highlight=False, soft_wrap=True)
    elif output_format == "table":
        console.print(graph_table(graph))
    else:
        console.print(render_rich_tree(graph))


def _display_extraction_result(result: ExtractionResult, output_format: str, output: Optional[str]) -> None:
    """Display an extraction result and optionally save the tree."""
    tree_json = json.dumps(result.tree.model_dump(), indent=2, ensure_ascii=False)

    if output:
        Path(output).write_text(tree_json + "\n", encoding="utf-8")

    if output_format == "json":
        console.print(tree_json, markup=False, highlight=False, soft_wrap=True)
        return

    engine = TopicTreeEngine()
    engine.initialize_tree(result.tree)
    engine.expand_all()

    console.print("\n[bold green]Topic Tree:[/bold green]")
    console.print(Panel(render_rich_tree(engine.graph), border_style="green"))

    summary = Table(show_header=False, box=None)
    summary.add_column("Key", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Topics", str(count_nodes(result.tree)))
    summary.add_row("Levels", str(tree_depth(result.tree)))
    summary.add_row("Extraction model", result.extraction_model)
    if result.validation_model:
        status = "passed" if result.validated else "failed, draft kept"
        summary.add_row("Validation", f"{result.validation_model} ({status})")
    if result.renamed_ids:
        summary.add_row("Renamed duplicate ids", ", ".join(result.renamed_ids))
    if output:
        summary.add_row("Saved to", output)
    console.print(summary)

    if output is None:
        console.print("\n[dim]Tree JSON:[/dim]")
        console.print(Syntax(tree_json, "json", theme="monokai", line_numbers=False))


if __name__ == "__main__":
    app()
