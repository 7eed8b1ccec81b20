"""Command line entry point.

Usage:
    simillimum migrate [--ini alembic.ini]
    simillimum seed --data repertory.json [--db URL] [--create-tables]
    simillimum suggest --case case.json [--db URL] [--history history.json]
                       [--config rules.json]
                       [--doctor ID] [--patient ID] [--persist]
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import pandas as pd
from alembic import command
from alembic.config import Config

from simillimum.api.schemas import HistoryItemIn, StructuredCaseIn
from simillimum.config import get_settings
from simillimum.core.errors import EngineError
from simillimum.core.logging import setup_json_logging
from simillimum.db import make_engine, make_sessionmaker
from simillimum.engine.params import load_params
from simillimum.engine.pipeline import ClassicalRuleEngine
from simillimum.repertory.orm_base import Base
from simillimum.repertory.seed import load_reference_data, read_reference_file

log = logging.getLogger("simillimum.cli")


async def _seed(db_url: str, data_path: str, create_tables: bool) -> dict[str, int]:
    engine = make_engine(db_url)
    try:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        Session = make_sessionmaker(engine)
        async with Session() as session:
            async with session.begin():
                return await load_reference_data(session, read_reference_file(data_path))
    finally:
        await engine.dispose()


async def _suggest(args: argparse.Namespace) -> dict:
    doc = json.loads(Path(args.case).read_text(encoding="utf-8"))
    case = StructuredCaseIn.model_validate(doc.get("structuredCase", doc)).to_case()
    raw_history = doc.get("patientHistory") or []
    if args.history:
        raw_history = json.loads(Path(args.history).read_text(encoding="utf-8"))
    history = [HistoryItemIn.model_validate(h).to_entry() for h in raw_history]
    params = load_params(args.config)

    engine = make_engine(args.db)
    try:
        Session = make_sessionmaker(engine)
        async with Session() as session:
            async with session.begin():
                rule_engine = ClassicalRuleEngine.for_session(session, params)
                run = await rule_engine.process_case(
                    args.doctor,
                    doc.get("patientId") or args.patient,
                    case,
                    history=history,
                    persist=args.persist,
                )
                return run.to_response()
    finally:
        await engine.dispose()


def _remedy_table(response: dict) -> pd.DataFrame:
    rows = [
        {
            "remedy": t["remedy"]["name"],
            "score": round(t["matchScore"], 2),
            "confidence": t["confidence"],
            "potency": t["suggestedPotency"],
            "repetition": t["repetition"],
            "warnings": len(t["warnings"]),
        }
        for t in response["suggestions"]["topRemedies"]
    ]
    return pd.DataFrame(rows, columns=["remedy", "score", "confidence", "potency", "repetition", "warnings"])


def _migrate(ini_path: str) -> None:
    command.upgrade(Config(ini_path), "head")


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="simillimum",
        description="Classical homeopathy repertorisation from the command line.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    migrate_parser = sub.add_parser("migrate", help="Apply database migrations (alembic upgrade head)")
    migrate_parser.add_argument("--ini", default="alembic.ini", help="Path to alembic.ini")

    seed_parser = sub.add_parser("seed", help="Load repertory reference data from a JSON document")
    seed_parser.add_argument("--data", required=True, help="Repertory JSON file")
    seed_parser.add_argument("--db", default=settings.DATABASE_URL, help="Async database URL")
    seed_parser.add_argument("--create-tables", action="store_true", help="Create tables before loading")

    suggest_parser = sub.add_parser("suggest", help="Run the rule engine on a structured case")
    suggest_parser.add_argument("--case", required=True, help="Case JSON file (structuredCase, patientHistory)")
    suggest_parser.add_argument("--history", help="Remedy history JSON list [{remedyId, date}]")
    suggest_parser.add_argument("--db", default=settings.DATABASE_URL, help="Async database URL")
    suggest_parser.add_argument("--config", default=settings.RULE_ENGINE_CONFIG_PATH, help="Rule engine config JSON")
    suggest_parser.add_argument("--doctor", default="cli", help="Doctor id stored on the case record")
    suggest_parser.add_argument("--patient", default="cli-patient", help="Patient id when the case file has none")
    suggest_parser.add_argument("--persist", action="store_true", help="Save a case record")
    suggest_parser.add_argument("--json", action="store_true", help="Print the full JSON response")

    args = parser.parse_args(argv)
    setup_json_logging(settings.LOG_LEVEL)

    try:
        if args.command == "migrate":
            _migrate(args.ini)
        elif args.command == "seed":
            counts = asyncio.run(_seed(args.db, args.data, args.create_tables))
            print(json.dumps(counts, indent=2))
        elif args.command == "suggest":
            response = asyncio.run(_suggest(args))
            if args.json:
                print(json.dumps(response, indent=2, ensure_ascii=False))
            else:
                table = _remedy_table(response)
                print("No remedy reached the minimum score." if table.empty else table.to_string(index=False))
    except EngineError as e:
        log.error("%s: %s", e.code, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
