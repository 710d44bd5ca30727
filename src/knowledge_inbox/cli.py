from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import AppConfig, load_config
from .errors import ConfigurationError, FetchError, IngestionError
from .ingest import ContentFetcher
from .log_config import configure_logging
from .service import MAX_QUESTION_CHARS, RetrievalService
from .store import KnowledgeStore

console = Console()


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to a config YAML file (default: config.yaml).",
    )


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Knowledge Inbox - save notes and web pages, then ask questions about them."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Save a note or a web page.")
    add_parser.add_argument("type", choices=["note", "url"], help="What kind of content to save.")
    add_parser.add_argument("content", type=str, help="Note text, or the URL to fetch.")
    _add_config_arg(add_parser)

    items_parser = subparsers.add_parser("items", help="List saved items, newest first.")
    _add_config_arg(items_parser)

    ask_parser = subparsers.add_parser("ask", help="Ask a question over your saved content.")
    ask_parser.add_argument("question", type=str, help="Question to ask.")
    ask_parser.add_argument(
        "--top-k", type=_positive_int, default=None, help="Number of chunks to use."
    )
    _add_config_arg(ask_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    _add_config_arg(serve_parser)

    return parser


def _open_store(cfg: AppConfig) -> KnowledgeStore:
    store = KnowledgeStore(cfg.database_url)
    store.init_schema()
    return store


def cmd_add(args: argparse.Namespace, cfg: AppConfig) -> int:
    store = _open_store(cfg)
    try:
        service = RetrievalService.from_config(cfg, store)
        text = args.content
        source_url = None
        if args.type == "url":
            fetcher = ContentFetcher(timeout=cfg.fetch_timeout)
            try:
                console.print(f"[green]Fetching:[/green] {args.content}")
                text = fetcher.fetch_url(args.content)
            except FetchError as e:
                console.print(f"[red]URL fetch failed:[/red] {e}")
                return 1
            finally:
                fetcher.close()
            source_url = args.content

        try:
            result = service.ingest(text, args.type, source_url)
        except IngestionError as e:
            console.print(f"[red]Ingestion failed:[/red] {e} (item {e.item_id})")
            return 1

        console.print(
            f"[bold green]Saved[/bold green] item {result.item_id} "
            f"({result.chunks_created} chunks)"
        )
        return 0
    finally:
        store.close()


def cmd_items(args: argparse.Namespace, cfg: AppConfig) -> int:
    store = _open_store(cfg)
    try:
        items = store.list_items()
    finally:
        store.close()

    if not items:
        console.print("[yellow]Nothing saved yet.[/yellow]")
        return 0

    table = Table(title=f"{len(items)} items")
    table.add_column("ID", no_wrap=True)
    table.add_column("Type")
    table.add_column("Saved")
    table.add_column("Preview")
    for item in items:
        saved = datetime.fromtimestamp(item.created_at / 1000).strftime("%Y-%m-%d %H:%M")
        preview = item.source_url or item.preview[:80]
        table.add_row(item.id, item.source_type, saved, Text(preview))
    console.print(table)
    return 0


def cmd_ask(args: argparse.Namespace, cfg: AppConfig) -> int:
    if len(args.question) > MAX_QUESTION_CHARS:
        console.print(f"[red]Question must be under {MAX_QUESTION_CHARS} characters.[/red]")
        return 1

    store = _open_store(cfg)
    try:
        service = RetrievalService.from_config(cfg, store)
        result = service.query(args.question, top_k=args.top_k)
    finally:
        store.close()

    console.rule("[bold green]Answer[/bold green]")
    console.print(result.answer, markup=False)

    if result.sources:
        console.rule("[bold blue]Sources[/bold blue]")
        for i, source in enumerate(result.sources, start=1):
            console.print(
                Panel(
                    Text(source.preview),
                    title=f"[{i}]",
                    subtitle=f"similarity={source.similarity:.3f}",
                    expand=False,
                )
            )
    return 0


def cmd_serve(args: argparse.Namespace, cfg: AppConfig) -> int:
    import uvicorn

    from .api import create_app

    store = _open_store(cfg)
    fetcher = ContentFetcher(timeout=cfg.fetch_timeout)
    try:
        app = create_app(RetrievalService.from_config(cfg, store), store, fetcher)
        uvicorn.run(app, host=args.host or cfg.host, port=args.port or cfg.port)
    finally:
        fetcher.close()
        store.close()
    return 0


COMMANDS = {
    "add": cmd_add,
    "items": cmd_items,
    "ask": cmd_ask,
    "serve": cmd_serve,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    configure_logging(json_output=cfg.json_logs, log_level=cfg.log_level)

    try:
        return COMMANDS[args.command](args, cfg)
    except ConfigurationError as e:
        raise SystemExit(f"Invalid configuration in {args.config}:\n{e}") from e


if __name__ == "__main__":
    raise SystemExit(main())
