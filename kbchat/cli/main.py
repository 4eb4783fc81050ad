"""CLI interface for kbchat using Typer."""

import asyncio
import json
import os
from typing import Annotated, Any

import typer
from chromadb.errors import ChromaError
from openai import OpenAIError
from rich.console import Console
from rich.table import Table

from ..chat.assistant import run_chat_session
from ..core.config.loader import load_config
from ..core.models.enums import SearchBackendType
from ..core.retrieval.policy import decide
from ..core.storage.knowledge_loader import load_knowledge_base
from ..core.storage.session_store import SessionStore
from ..integrations.openai_client import LLMClient, mask_api_key
from ..observability.logger import get_logger, setup_logging
from ..search.service import build_search_service

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="kbchat",
    help="Local knowledge-base chat assistant with LLM answers",
    add_completion=False,
)


def _get_config() -> dict[str, Any]:
    return load_config()


def _get_store(config: dict[str, Any]) -> SessionStore:
    """Get the JSON session store from config."""
    return SessionStore(config.get("storage", {}).get("sessions_path"))


@app.callback()
def main() -> None:
    """Configure logging from the loaded configuration."""
    logging_config = _get_config().get("logging", {})
    setup_logging(
        log_level=logging_config.get("level", "WARNING"),
        log_format=logging_config.get("format", "console"),
        log_file=logging_config.get("file"),
    )


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Question to look up")],
    top_k: Annotated[int | None, typer.Option("--top-k", "-k", help="Number of ranked items to show")] = None,
    threshold: Annotated[float | None, typer.Option("--threshold", "-t", help="Acceptance threshold")] = None,
    backend: Annotated[
        SearchBackendType | None,
        typer.Option("--backend", "-b", help="Search backend (defaults to config)"),
    ] = None,
):
    """Rank knowledge items for a question and show the accept/reject verdict."""
    if top_k is not None and top_k <= 0:
        console.print("[red]! Error:[/red] --top-k must be greater than 0")
        raise typer.Exit(code=1)
    if threshold is not None and not 0.0 <= threshold <= 1.0:
        console.print("[red]! Error:[/red] --threshold must be between 0 and 1")
        raise typer.Exit(code=1)

    config = _get_config()
    knowledge_base = load_knowledge_base(config.get("knowledge", {}).get("path"))

    try:
        service = build_search_service(config, knowledge_base, backend_type=backend)
    except ValueError as e:
        console.print(f"[red]! Error:[/red] {e}")
        raise typer.Exit(code=1)

    effective = service.threshold if threshold is None else threshold

    try:
        ranked = asyncio.run(service.search_ranked(query, top_k=top_k))
    except (OpenAIError, ChromaError) as e:
        logger.warning("knowledge_search_failed", error=str(e))
        console.print(f"[yellow]Search backend unavailable:[/yellow] {e}")
        ranked = []

    match = decide(ranked[0] if ranked else None, effective)

    if not ranked:
        console.print("[yellow]No knowledge items scored for this query[/yellow]")
    else:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Rank", style="dim", width=6)
        table.add_column("Score", justify="right")
        table.add_column("Category")
        table.add_column("Subcategory")
        table.add_column("Question")

        for idx, item in enumerate(ranked, start=1):
            table.add_row(
                str(idx),
                f"{item.score:.3f}",
                item.category or "-",
                item.subcategory or "-",
                item.entry.question[:60],
            )
        console.print(table)

    if match:
        console.print(f"\n[green]> Match[/green] (threshold {effective}) tags: {', '.join(sorted(match.tags))}")
        console.print(f"[bold]Answer:[/bold] {match.answer}")
    else:
        console.print(f"\n[yellow]No match[/yellow] (threshold {effective})")


@app.command()
def chat(
    session_id: Annotated[str | None, typer.Option("--session", "-s", help="Continue a stored session")] = None,
    prompt: Annotated[str | None, typer.Option("--prompt", "-p", help="Single question (omit for interactive mode)")] = None,
    multi_turn: Annotated[
        bool | None,
        typer.Option("--multi-turn/--single-turn", help="Send the last 10 messages instead of only the latest"),
    ] = None,
):
    """Chat with the assistant; answers draw on the local knowledge base."""
    config = _get_config()
    try:
        session = run_chat_session(
            config,
            session_id=session_id,
            prompt=prompt,
            multi_turn=multi_turn,
            console=console,
        )
    except KeyError:
        console.print(f"[red]! Error:[/red] No session found: {session_id}")
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[red]! Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[dim]Session saved:[/dim] {session.id}")


@app.command()
def sessions():
    """List stored chat sessions, newest first."""
    store = _get_store(_get_config())

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Session ID")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Created")

    for session in store.list_sessions():
        table.add_row(session.id, session.title, str(len(session.messages)), session.created_at.isoformat())

    console.print(table)


@app.command()
def delete_session(
    session_id: Annotated[str, typer.Argument(help="Session to delete")],
):
    """Delete a stored chat session."""
    store = _get_store(_get_config())
    if store.load_session(session_id) is None:
        console.print(f"[yellow]No session found:[/yellow] {session_id}")
        raise typer.Exit(code=1)

    current = store.delete_session(session_id)
    console.print(f"[green]Deleted[/green] {session_id}")
    console.print(f"[dim]Current session:[/dim] {current.id} ({current.title})")


@app.command()
def kb_stats():
    """Show the size and shape of the configured knowledge base."""
    config = _get_config()
    path = config.get("knowledge", {}).get("path")
    knowledge_base = load_knowledge_base(path)

    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Source", str(path))
    table.add_row("Mode", "hierarchical" if knowledge_base.is_hierarchical else "flat")
    table.add_row("Categories", str(len(knowledge_base.categories)))
    table.add_row(
        "Subcategories",
        str(sum(len(category.subcategories) for category in knowledge_base.categories)),
    )
    table.add_row("Items", str(knowledge_base.item_count))

    console.print(table)


@app.command()
def validate_key(
    api_key: Annotated[str | None, typer.Option("--api-key", help="Key to check (defaults to the configured env var)")] = None,
    base_url: Annotated[str | None, typer.Option("--base-url", help="API base URL (defaults to config)")] = None,
):
    """Check an API key by sending a tiny completion request."""
    llm_config = _get_config().get("llm", {})
    try:
        client = LLMClient(
            api_key=api_key,
            base_url=base_url or llm_config.get("base_url"),
            model=llm_config.get("model", "deepseek-chat"),
            api_key_env=llm_config.get("api_key_env", "DEEPSEEK_API_KEY"),
            timeout=llm_config.get("timeout", 60),
        )
    except ValueError as e:
        console.print(f"[red]! Error:[/red] {e}")
        raise typer.Exit(code=1)

    result = asyncio.run(client.validate_credentials(api_key=api_key, base_url=base_url))
    if result.valid:
        console.print(f"[green]> API key is valid[/green] ({client.masked_api_key})")
    else:
        console.print(f"[red]! API key check failed:[/red] {result.error}")
        raise typer.Exit(code=1)


@app.command()
def show_config():
    """Print the effective configuration with API keys masked."""
    config = _get_config()
    console.print_json(json.dumps(config, ensure_ascii=False, default=str))

    for section in ("llm", "embedding"):
        key_env = config.get(section, {}).get("api_key_env")
        if not key_env:
            continue
        masked = mask_api_key(os.getenv(key_env)) or "[yellow]not set[/yellow]"
        console.print(f"[bold]{section}[/bold] {key_env}: {masked}")


if __name__ == "__main__":
    app()
