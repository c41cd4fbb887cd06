"""
TaskOps CLI — bootstrap and operate the function runtime.

Commands:
- taskops init        — Write taskops.yaml (if missing) and create tables
- taskops serve       — Start the FastAPI server under uvicorn
- taskops invoke      — Run one function locally and print its JSON response
- taskops functions   — List registered functions and their triggers
- taskops worker      — Start a Celery worker
- taskops beat        — Start Celery Beat with the function schedules
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from taskops.engine.config import CONFIG_FILENAME

logger = logging.getLogger("taskops.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="taskops",
        description="TaskOps — task rollup, escalation and analytics functions",
    )
    parser.add_argument(
        "--config", default=None, help=f"Path to {CONFIG_FILENAME} (default: auto-discover)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # taskops init
    init_parser = subparsers.add_parser("init", help="Write default config and create tables")
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing config file"
    )

    # taskops serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Host to bind (default: server.host)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: server.port)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # taskops invoke
    invoke_parser = subparsers.add_parser("invoke", help="Invoke a function locally")
    invoke_parser.add_argument("name", help="Function name (e.g., process-overdue-tasks)")
    invoke_parser.add_argument("--data", default=None, help="JSON body (default: {})")

    # taskops functions
    subparsers.add_parser("functions", help="List registered functions")

    # taskops worker / beat
    worker_parser = subparsers.add_parser("worker", help="Start a Celery worker")
    worker_parser.add_argument("--loglevel", default="info")
    beat_parser = subparsers.add_parser("beat", help="Start Celery Beat")
    beat_parser.add_argument("--loglevel", default="info")

    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "serve":
        return cmd_serve(args)
    elif args.command == "invoke":
        return cmd_invoke(args)
    elif args.command == "functions":
        return cmd_functions(args)
    elif args.command == "worker":
        return cmd_worker(args)
    elif args.command == "beat":
        return cmd_beat(args)
    else:
        parser.print_help()
        return 0


def _load(args: argparse.Namespace):
    from taskops.engine.config import load_config

    return load_config(args.config)


def cmd_init(args: argparse.Namespace) -> int:
    """
    Bootstrap a project:
    1. Write taskops.yaml with defaults (unless present)
    2. Load and validate it
    3. Create all tables
    """
    from taskops.db.session import init_db_from_config
    from taskops.engine.config import default_config_yaml, load_config
    from taskops.engine.errors import TaskOpsConfigError

    print("=" * 60)
    print("  TaskOps Initialization")
    print("=" * 60)

    path = Path(args.config or CONFIG_FILENAME)
    if path.exists() and not args.force:
        print(f"[OK] Using existing {path}")
    else:
        path.write_text(default_config_yaml(), encoding="utf-8")
        print(f"[OK] Wrote default config to {path}")

    try:
        config = load_config(str(path))
        print(f"[OK] Loaded config ({config.environment})")
    except TaskOpsConfigError as e:
        print(f"[ERROR] {e.message}: {e.details}")
        return 1

    try:
        init_db_from_config(create_tables=True)
    except Exception as e:
        print(f"[ERROR] Database initialization failed: {e}")
        return 1
    print("[OK] Database tables created")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from taskops.engine.runtime import init_runtime
    from taskops.server import run

    init_runtime(args.config)
    run(host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_invoke(args: argparse.Namespace) -> int:
    """Run a function in-process and print the response body."""
    from taskops.engine.executor import get_executor
    from taskops.engine.runtime import init_runtime

    try:
        body = json.loads(args.data) if args.data else {}
    except json.JSONDecodeError as e:
        print(f"[ERROR] --data is not valid JSON: {e}")
        return 1

    init_runtime(args.config)
    response = get_executor().invoke(args.name, body, triggered_by="cli")
    print(json.dumps(response.body, indent=2, default=str))
    if not response.ok:
        print(f"[ERROR] {args.name} returned {response.status_code}")
        return 1
    return 0


def cmd_functions(args: argparse.Namespace) -> int:
    from taskops.engine.registry import function_registry
    from taskops.process.scheduler import FunctionScheduler

    config = _load(args)
    function_registry.discover()
    scheduler = FunctionScheduler(config=config)

    for fn in function_registry.get_all():
        triggers = [f"cron {scheduler.resolve_cron(s)}" for s in fn.schedules]
        triggers += [f"event {e}" for e in fn.events]
        print(f"  {fn.name:<28} {', '.join(triggers) or 'http only'}")
        if fn.description:
            print(f"      {fn.description}")
    print(f"\n{function_registry.count} function(s)")
    return 0


def cmd_worker(args: argparse.Namespace) -> int:
    from taskops.process.executor import get_celery_app

    config = _load(args)
    get_celery_app().worker_main([
        "worker",
        f"--loglevel={args.loglevel}",
        f"--concurrency={config.celery.concurrency}",
        "-Q", ",".join(config.celery.queues),
    ])
    return 0


def cmd_beat(args: argparse.Namespace) -> int:
    from taskops.engine.registry import function_registry
    from taskops.process.executor import get_celery_app
    from taskops.process.scheduler import FunctionScheduler

    config = _load(args)
    function_registry.discover()
    count = FunctionScheduler(config=config).apply_celery_beat_config()
    print(f"[OK] {count} Beat schedule(s) configured")
    get_celery_app().start(["beat", f"--loglevel={args.loglevel}"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
