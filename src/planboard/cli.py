from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from .config import ENV_CONFIG, Settings, load_settings
from .container import Planboard
from .logging_setup import configure_logging

HEALTH_STYLES = {
    "excellent": "[green]excellent[/green]",
    "good": "[cyan]good[/cyan]",
    "fair": "[yellow]fair[/yellow]",
    "critical": "[red]critical[/red]",
}


def _settings(args: argparse.Namespace) -> Settings:
    path: Optional[Path] = None
    if args.config:
        path = Path(args.config).expanduser()
    elif os.environ.get(ENV_CONFIG):
        path = Path(os.environ[ENV_CONFIG]).expanduser()
    settings, err = load_settings(path)
    configure_logging(settings.log_level)
    if err:
        logger.warning("Config error, using defaults: {}", err)
    if args.sample:
        settings = settings.model_copy(update={"seed_sample_data": True})
    return settings


def _board(args: argparse.Namespace) -> Planboard:
    return Planboard(_settings(args))


def _status(args: argparse.Namespace) -> int:
    board = _board(args)
    console = Console()

    modules = Table(title="Action plan", show_header=True)
    modules.add_column("Module", style="cyan")
    modules.add_column("Pending", justify="right")
    modules.add_column("In progress", justify="right")
    modules.add_column("Done", justify="right")
    modules.add_column("Completion %", justify="right")
    modules.add_column("Health")
    for module in board.action_plan.modules():
        modules.add_row(
            module.name.value,
            str(len(module.pending)),
            str(len(module.in_progress)),
            str(len(module.done)),
            f"{module.metrics.completion_rate:.1f}",
            HEALTH_STYLES.get(module.health.value, module.health.value),
        )
    console.print(modules)

    stats = board.backlog.statistics()
    columns = Table(title="Backlog", show_header=True)
    columns.add_column("Column", style="cyan")
    columns.add_column("Items", justify="right")
    for col in board.backlog.columns():
        columns.add_row(col.title, str(stats["items_by_column"].get(col.id.value, 0)))
    console.print(columns)

    pipeline = board.pipeline.status()
    console.print(f"Pipeline: [bold]{pipeline['state']}[/bold], {len(pipeline['queue'])} queued")
    return 0


def _process(args: argparse.Namespace) -> int:
    board = _board(args)
    record = board.pipeline.run_batch_sync()
    if record is None:
        sys.stderr.write("Pipeline already processing\n")
        return 1
    sys.stdout.write(json.dumps(record.to_dict(), indent=2) + "\n")
    return 0


def _export(args: argparse.Namespace) -> int:
    board = _board(args)
    try:
        if args.store == "action-plan":
            body = board.action_plan.export(args.format, include_logs=args.include_logs)
        else:
            body = board.backlog.export(args.format)
    except ValueError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1
    if args.output:
        Path(args.output).write_text(body, encoding="utf-8")
    else:
        sys.stdout.write(body + ("" if body.endswith("\n") else "\n"))
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    board = _board(args)
    board.start()
    try:
        uvicorn.run(create_app(board), host=args.host, port=args.port)
    finally:
        board.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Planboard: action plan and backlog orchestration")
    parser.add_argument("--config", default=None, help=f"YAML config file (default: ${ENV_CONFIG} or planboard.yaml)")
    parser.add_argument("--sample", action="store_true", help="Load the sample backlog")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show module health and backlog columns")
    status.set_defaults(func=_status)

    process = subparsers.add_parser("process", help="Run one classification batch")
    process.set_defaults(func=_process)

    export = subparsers.add_parser("export", help="Export a store")
    export.add_argument("--store", choices=["action-plan", "backlog"], default="backlog")
    export.add_argument("--format", choices=["json", "csv", "kanban"], default="json")
    export.add_argument("--include-logs", action="store_true")
    export.add_argument("--output", default=None)
    export.set_defaults(func=_export)

    serve = subparsers.add_parser("serve", help="Start the HTTP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", default=8000, type=int)
    serve.set_defaults(func=_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
