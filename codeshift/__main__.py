import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .core.config.config_loader import load_config


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("psycopg2").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _connect(config):
    from .core.db.db import DatabaseManager, wait_for_db

    db_cfg = config["database"]
    db_manager = DatabaseManager(db_cfg["url"], pool_size=db_cfg["pool_size"], echo=db_cfg["echo"])
    if not wait_for_db(db_manager):
        raise SystemExit(f"Database at {db_manager.engine.url!r} is not reachable")
    db_manager.init_db()
    return db_manager


def _build(config):
    from .core.services import build_services

    return build_services(config, db_manager=_connect(config))


def _cmd_init_db(args, config) -> int:
    db_manager = _connect(config)
    logger.info(f"Database ready ({db_manager.dialect_name}, pgvector={db_manager.has_vector_extension()})")
    return 0


def _cmd_index(args, config) -> int:
    from .core.chunks.models import CodeChunk
    from .core.ingestion.indexer import ChunkIndexer

    services = _build(config)
    records = json.loads(Path(args.chunks).read_text())
    chunks = [CodeChunk.from_dict(r) for r in records]

    emb_cfg = config["embedding"]
    indexer = ChunkIndexer(
        services.store,
        services.embedder,
        batch_size=emb_cfg["batch_size"],
        delay_between_batches_ms=emb_cfg["delay_between_batches_ms"],
    )

    async def _run():
        report = await indexer.index(chunks, args.session, args.user, project_name=args.project_name)
        if args.refresh_similar:
            await indexer.refresh_similar_chunks(args.session)
        return report

    report = asyncio.run(_run())
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.success else 1


def _cmd_migrate(args, config) -> int:
    from .core.migration.orchestrator import MigrationOrchestrator

    services = _build(config)
    options = json.loads(args.options) if args.options else {}
    request = {
        "sessionId": args.session,
        "userId": args.user,
        "command": args.command_text,
        "targetTechnology": args.target,
        "options": options,
    }
    report = asyncio.run(MigrationOrchestrator(services).process_migration(request))

    output = json.dumps(report, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output)
        logger.info(f"Migration report written to {args.output}")
    else:
        print(output)
    return 0 if report.get("success") else 1


def _cmd_serve(args, config) -> int:
    import uvicorn

    from .api.app import create_app

    app = create_app(_build(config))

    logger.info(f"Starting FastAPI server on http://{args.host}:{args.port}")
    print(f"\n  codeshift is running at: http://localhost:{args.port}")
    print(f"  API docs at: http://localhost:{args.port}/docs\n")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return 0


def main(argv=None) -> int:
    """Main entry point for codeshift."""
    parser = argparse.ArgumentParser(description="codeshift - AI-assisted code migration")
    parser.add_argument("--config", type=str, default=None, help="Path to codeshift.yaml")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to the configured level)"
    )
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("init-db", help="Create the vector extension and tables")

    p_index = sub.add_parser("index", help="Embed and store parsed chunk records from a JSON file")
    p_index.add_argument("chunks", help="JSON array of chunk records")
    p_index.add_argument("--session", required=True)
    p_index.add_argument("--user", required=True)
    p_index.add_argument("--project-name", default=None)
    p_index.add_argument("--refresh-similar", action="store_true", help="Recompute similar-chunk lists")

    p_migrate = sub.add_parser("migrate", help="Run a migration for an indexed session")
    p_migrate.add_argument("command_text", metavar="command", help="Natural-language migration command")
    p_migrate.add_argument("--session", required=True)
    p_migrate.add_argument("--user", required=True)
    p_migrate.add_argument("--target", required=True, help="Target technology tag, e.g. prisma")
    p_migrate.add_argument("--options", default=None, help="Retrieval options as JSON")
    p_migrate.add_argument("--output", default=None, help="Write the report here instead of stdout")

    p_serve = sub.add_parser("serve", help="Run the API server")
    p_serve.add_argument("--host", type=str, default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=9005, help="Port for the API server")

    args = parser.parse_args(argv)
    config = load_config(args.config)
    if args.log_level is None:
        args.log_level = config["logging"]["level"]
    setup_logging(args.log_level)

    handlers = {
        "init-db": _cmd_init_db,
        "index": _cmd_index,
        "migrate": _cmd_migrate,
        "serve": _cmd_serve,
    }
    if args.cmd is None:
        parser.print_help()
        return 2
    return handlers[args.cmd](args, config)


if __name__ == "__main__":
    sys.exit(main())
