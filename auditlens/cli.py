"""Command-line front end: run the aggregation engine over exported audit JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from rich import print

from auditlens import config
from auditlens.engine.errors import AuditDataError
from auditlens.engine.report import build_comparison_response, build_evolution_response, recalculate_patterns
from auditlens.logging_config import configure_logging

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {"critical": "red", "serious": "dark_orange", "moderate": "yellow", "minor": "blue"}
INSIGHT_COLORS = {"positive": "green", "negative": "red", "warning": "yellow", "neutral": "cyan"}


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate, compare and trend accessibility audits.")
    parser.add_argument("--json", action="store_true", help="Print the raw JSON result instead of a summary.")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default from LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Compare an audit with a previous one.")
    compare.add_argument("current", help='JSON file with {"audit": {...}, "violations": [...]}.')
    compare.add_argument("previous", nargs="?", default=None, help="Same format, for the previous audit.")

    evolution = sub.add_parser("evolution", help="Trends across a project's audits.")
    evolution.add_argument("audits", help='JSON file with a list of audits or {"audits": [...]}.')
    evolution.add_argument("--period", default=config.EVOLUTION_DEFAULT_PERIOD, help="7d, 30d, 90d, 1y or all.")
    evolution.add_argument("--limit", type=int, default=20, help="Maximum number of audits considered.")

    patterns = sub.add_parser("patterns", help="Recalculate the pattern summary of an audit.")
    patterns.add_argument("audit", help='JSON file with {"audit": {...}, "violations": [...]}.')
    patterns.add_argument("--xpath", action="store_true", help="Group by XPath instead of CSS selector.")

    return parser.parse_args(argv)


def _load(path: str) -> dict | list:
    with open(Path(path), "r", encoding="utf-8") as handle:
        return json.load(handle)


def _audit_bundle(path: str) -> tuple[dict, list]:
    data = _load(path)
    if not isinstance(data, dict) or not isinstance(data.get("audit"), dict):
        raise AuditDataError(f"{path}: expected an object with an 'audit' key")
    return data["audit"], data.get("violations") or []


def _print_insights(insights: list[dict]) -> None:
    for insight in insights:
        color = INSIGHT_COLORS.get(insight["type"], "white")
        print(f"  [{color}]{insight['message']}[/{color}]")


def _print_comparison(result: dict) -> None:
    current = result["current"]
    print(f"[bold]Auditoria {current['id']}[/bold] - score {current['health_score']}")
    if result["previous"] is None:
        print("Sem auditoria anterior para comparar.")
    else:
        delta = result["delta"]
        print(f"Comparada com {result['previous']['id']} ({result['trend']})")
        print(f"  Score: {delta['health_score']:+}  Total: {delta['total']:+}  Criticas: {delta['critical']:+}")
        counts = result["counts"]
        print("  " + "  ".join(f"{name}: {count}" for name, count in counts.items()))
        for detail in result["violations"]["new"]:
            color = SEVERITY_COLORS[detail["impact"]]
            print(f"  [{color}]+ {detail['rule_id']}[/{color}] ({detail['impact']})")
    _print_insights(result["insights"])


def _print_evolution(result: dict) -> None:
    print(f"[bold]Evolucao ({result['period']})[/bold] - {len(result['audits'])} auditorias")
    for metric, trend in result["trends"].items():
        print(f"  {metric}: {trend['direction']} ({trend['change_percent']:+}%)")
    _print_insights(result["insights"])


def _print_patterns(result: dict) -> None:
    print(f"[bold]Padroes da auditoria {result['audit_id']}[/bold]")
    for level, count in result["patterns"].items():
        occurrences = result["summary"][level]["occurrences"]
        print(f"  {level}: {count} padroes / {occurrences} ocorrencias")


def run(args: argparse.Namespace) -> dict:
    if args.command == "compare":
        current, current_violations = _audit_bundle(args.current)
        previous, previous_violations = _audit_bundle(args.previous) if args.previous else (None, None)
        return build_comparison_response(current, current_violations, previous, previous_violations)
    if args.command == "evolution":
        data = _load(args.audits)
        audits = data.get("audits", []) if isinstance(data, dict) else data
        limit = min(args.limit, config.EVOLUTION_MAX_LIMIT)
        return build_evolution_response(audits, period=args.period, limit=limit)
    audit, violations = _audit_bundle(args.audit)
    return recalculate_patterns(audit, violations, use_xpath=args.xpath)


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        result = run(args)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not read input: %s", exc)
        print(f"[red]Erro ao ler arquivo:[/red] {exc}")
        return 1
    except AuditDataError as exc:
        logger.error("Invalid audit data: %s", exc)
        print(f"[red]Dados de auditoria invalidos:[/red] {exc}")
        return 1

    if args.json:
        sys.stdout.write(json.dumps(result, ensure_ascii=False, indent=2) + "\n")
    elif args.command == "compare":
        _print_comparison(result)
    elif args.command == "evolution":
        _print_evolution(result)
    else:
        _print_patterns(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
