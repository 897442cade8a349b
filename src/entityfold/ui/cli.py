# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from entityfold.api.schemas import ResolveDuplicatesRequest, analysis_out
from entityfold.app import build_service
from entityfold.common.logging import parse_level
from entityfold.config import ConfigurationError, configure_logging
from entityfold.domain.errors import MergeError
from entityfold.domain.queries import DEFAULT_PAGE, DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from entityfold.app import MergeService

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find and merge duplicate directory entities")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level name, e.g. DEBUG (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database tables")

    duplicates = subparsers.add_parser("duplicates", help="List duplicate names")
    duplicates.add_argument(
        "--type",
        dest="entity_type",
        type=str,
        help="Entity type (1 = individual, 2 = organization); enables pagination",
    )
    duplicates.add_argument(
        "--people",
        action="store_true",
        help="List duplicate person full names instead of entity names",
    )
    duplicates.add_argument(
        "--page",
        type=int,
        default=DEFAULT_PAGE,
        help="Page number when --type is given (default: %(default)s)",
    )
    duplicates.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_PAGE_SIZE,
        help="Page size when --type is given (default: %(default)s)",
    )

    analyze = subparsers.add_parser(
        "analyze",
        help="Ask the resolution oracle to resolve people sharing a name",
    )
    analyze.add_argument("--name", type=str, required=True, help="Full name to analyse")

    apply = subparsers.add_parser("apply", help="Apply a merge plan from a JSON file")
    apply.add_argument(
        "--file",
        type=str,
        required=True,
        help="Path to the merge plan JSON, or '-' to read standard input",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")

    return parser.parse_args(list(argv))


def _read_plan(source: str) -> ResolveDuplicatesRequest:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        return ResolveDuplicatesRequest.model_validate_json(text)
    except ValueError as exc:
        raise ValueError(f"Invalid merge plan in {source}: {exc}") from exc


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _list_duplicates(service: MergeService, args: argparse.Namespace) -> None:
    if args.people:
        _print_json(service.similar_people_names())
        return
    if args.entity_type is None:
        _print_json(service.similar_entity_names())
        return
    result = service.similar_entity_names_page(args.entity_type, page=args.page, limit=args.limit)
    _print_json(
        {
            "duplicateGroups": [
                {"name": group.name, "duplicateCount": group.duplicate_count}
                for group in result.groups
            ],
            "pagination": {
                "limit": result.pagination.limit,
                "page": result.pagination.page,
                "offset": result.pagination.offset,
                "total": result.pagination.total,
            },
        }
    )


async def _analyze(service: MergeService, name: str) -> None:
    try:
        result = await service.analyze(name)
    finally:
        await service.aclose()
    log.info(
        "Analysis finished: people=%s, groups=%s, proposals=%s",
        result.total_found,
        result.duplicate_groups_count,
        len(result.grouped),
    )
    _print_json(analysis_out(result).model_dump(mode="json", by_alias=True))


def _serve(service: MergeService, host: str, port: int) -> None:
    import uvicorn

    from entityfold.api import create_app

    uvicorn.run(create_app(service), host=host, port=port, log_config=None)


def _dispatch(service: MergeService, args: argparse.Namespace) -> None:
    if args.command == "init-db":
        log.info("Database schema is ready")
    elif args.command == "duplicates":
        _list_duplicates(service, args)
    elif args.command == "analyze":
        asyncio.run(_analyze(service, args.name))
    elif args.command == "apply":
        result = service.apply(_read_plan(args.file).to_proposal())
        log.info(
            "Merged %s into %s (audit %s)",
            result.deleted_entity_ids,
            result.merged_entity_id,
            result.audit_id,
        )
    elif args.command == "serve":
        _serve(service, args.host, args.port)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        configure_logging(level=parse_level(parsed_args.log_level))
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        service = build_service(create_schema=parsed_args.command == "init-db")
    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(2)

    try:
        _dispatch(service, parsed_args)
    except MergeError as exc:
        log.error("%s", exc.message)  # noqa: TRY400
        sys.exit(1)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    finally:
        service.close()


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
