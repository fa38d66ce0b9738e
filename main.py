"""Entrypoint: industry insight lookups, scheduled refreshes, and resume improvement."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from insight_engine.config import load_settings
from insight_engine.models import apply_migrations, get_connection
from insight_engine.orchestrator import build_generator, get_or_create_insight, improve_section, insight_view
from insight_engine.scheduler import run_due_refresh, run_weekly_refresh


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Industry insights generator")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init-db", help="Apply SQLite migrations only")

    insight = subparsers.add_parser("insight", help="Show insights for an industry, generating them if absent")
    insight.add_argument("industry")

    subparsers.add_parser("refresh", help="Regenerate insights for every known industry (weekly job)")
    subparsers.add_parser("refresh-due", help="Regenerate insights whose next update has passed")

    improve = subparsers.add_parser("improve", help="Improve a resume section with the LLM")
    improve.add_argument("--type", dest="section_type", default="experience", help="Section type, e.g. experience")
    improve.add_argument("--industry", required=True)
    improve.add_argument("text", help="Current section text")
    return parser


def _print_refresh(result: dict) -> None:
    print(f"Refreshed {result['count']} industr{'y' if result['count'] == 1 else 'ies'} ({result['fallbacks']} fallback)")
    for item in result["results"]:
        print(f"- industry={item['industry']} status={item['status']} source={item['source']}")


def main() -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 2

    config = load_settings(args.settings)
    logging.basicConfig(
        level=str(config.get("logging", {}).get("level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    db_path = config["database"]["path"]
    apply_migrations(db_path)

    if args.command == "init-db":
        print(f"Database initialized at {db_path}")
        return 0

    with get_connection(db_path) as conn:
        if args.command == "refresh":
            _print_refresh(run_weekly_refresh(conn, config))
            return 0

        if args.command == "refresh-due":
            _print_refresh(run_due_refresh(conn, config))
            return 0

        generator = build_generator(conn, config)

        if args.command == "insight":
            result = get_or_create_insight(conn, config, generator, args.industry)
            if not result["ok"]:
                print(f"Error: {result['reason']}", file=sys.stderr)
                return 1
            print(json.dumps(insight_view(result["insight"]), indent=2))
            return 0

        if args.command == "improve":
            result = improve_section(generator, args.text, args.section_type, args.industry)
            if not result["ok"]:
                print(f"Error: {result['error']}", file=sys.stderr)
                return 1
            print(result["content"])
            return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
