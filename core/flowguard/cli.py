"""
Command-line interface for flowguard.

Usage:
    flowguard catalogue [--category Browser]
    flowguard validate graphs/login.json
    flowguard run graphs/login.json --role staff --profile '{"username": "alice"}'
    flowguard run graphs/report.json --role admin --db data.db --var limit=10

Runs started from the command line have no interactive session attached:
session nodes fail with NodeFailed. Use them to exercise logic, data and
network nodes, or to check a graph against a role's capabilities.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any


def _load_graph(path: str) -> dict[str, Any]:
    graph_path = Path(path)
    if not graph_path.exists():
        print(f"Graph file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return json.loads(graph_path.read_text())
    except json.JSONDecodeError as e:
        print(f"Invalid JSON in {path}: {e}", file=sys.stderr)
        raise SystemExit(1) from e


def _parse_vars(pairs: list[str] | None) -> dict[str, Any]:
    """Parse repeated ``--var key=value``. Values are JSON when they parse as JSON."""
    variables: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            print(f"Ignoring malformed --var '{pair}' (expected key=value)", file=sys.stderr)
            continue
        try:
            variables[key] = json.loads(value)
        except json.JSONDecodeError:
            variables[key] = value
    return variables


def cmd_catalogue(args: argparse.Namespace) -> int:
    """Print the node catalogue as JSON."""
    from flowguard.registry import create_default_registry

    catalogue = create_default_registry().export_catalogue()
    if args.category:
        catalogue = [n for n in catalogue if n["category"].lower() == args.category.lower()]
    print(json.dumps(catalogue, indent=2, default=str))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Report structural problems in a graph document."""
    from flowguard.graph import GraphSpec
    from flowguard.registry import create_default_registry

    graph = GraphSpec.from_document(_load_graph(args.graph))
    problems = graph.validate(create_default_registry())

    if not problems:
        print(f"✓ {args.graph}: {len(graph.nodes)} nodes, no problems found")
        return 0

    print(f"✗ {args.graph}: {len(problems)} problem(s)")
    for problem in problems:
        print(f"  - {problem}")
    return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute a graph for a role and print the ExecutionResult."""
    from flowguard.config import load_secrets
    from flowguard.graph import GraphExecutor
    from flowguard.observability import configure_logging
    from flowguard.registry import create_default_registry
    from flowguard.storage import SQLiteDataStore

    configure_logging(level=args.log_level, format=args.log_format)

    try:
        profile = json.loads(args.profile) if args.profile else {}
    except json.JSONDecodeError as e:
        print(f"Invalid --profile JSON: {e}", file=sys.stderr)
        return 1

    document = _load_graph(args.graph)
    secrets = load_secrets(args.secrets_env) if args.secrets_env else {}
    data_store = SQLiteDataStore(args.db) if args.db else None

    executor = GraphExecutor(registry=create_default_registry())
    try:
        result = asyncio.run(
            executor.start_run(
                document,
                role=args.role,
                profile=profile,
                secrets=secrets,
                variables=_parse_vars(args.var),
                data_store=data_store,
            )
        )
    finally:
        if data_store is not None:
            data_store.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    """Register the catalogue, validate and run subcommands."""
    catalogue_parser = subparsers.add_parser("catalogue", help="Print the node catalogue")
    catalogue_parser.add_argument("--category", help="Only nodes in this category")
    catalogue_parser.set_defaults(func=cmd_catalogue)

    validate_parser = subparsers.add_parser("validate", help="Check a graph document")
    validate_parser.add_argument("graph", help="Path to the graph JSON (flat or Drawflow)")
    validate_parser.set_defaults(func=cmd_validate)

    run_parser = subparsers.add_parser("run", help="Execute a graph")
    run_parser.add_argument("graph", help="Path to the graph JSON (flat or Drawflow)")
    run_parser.add_argument("--role", required=True, help="Acting role, e.g. staff")
    run_parser.add_argument("--profile", help="Profile bag as JSON")
    run_parser.add_argument("--secrets-env", help=".env file with the secrets bag")
    run_parser.add_argument("--db", help="SQLite database for data nodes")
    run_parser.add_argument(
        "--var", action="append", metavar="KEY=VALUE", help="Initial variable (repeatable)"
    )
    run_parser.add_argument("--log-level", default="INFO")
    run_parser.add_argument("--log-format", default="auto", choices=["auto", "json", "human"])
    run_parser.set_defaults(func=cmd_run)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="flowguard",
        description="flowguard - run automation graphs under a security policy",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
