"""Command-line entry point.

Subcommands:

* ``search QUERY`` runs one aggregated search and prints the results.
* ``status`` probes every upstream source.
* ``serve`` runs the HTTP API with uvicorn.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from .aggregator import SearchResponse, build_aggregator
from .config import AppConfig, find_config, load_config
from .ranking import FILTER_CATEGORIES, HIGH_SEVERITY, SORT_KEYS
from .report import write_markdown_report
from .status import check_sources

_STATUS_ICONS = {
    "online": "✅",
    "offline": "❌",
    "error": "❌",
    "no-key": "🔑",
    "disabled": "⏸️",
}


def _load(config_path: Optional[Path]) -> AppConfig:
    return load_config(config_path or find_config())


def _print_results(response: SearchResponse) -> None:
    print(f"🔍 {response.query!r}: {response.total} results from {response.total_sources} sources ({response.duration_ms} ms)")
    for o in response.outcomes:
        icon = "✅" if o.ok else "⚠️"
        detail = f" ({o.error_detail})" if o.error_detail else ""
        print(f"  {icon} {o.source_name}: {o.status.value}, {o.record_count} records{detail}")
    print()
    for r in response.records:
        severity = r.severity_label.value if r.severity_label else "-"
        date = r.published_date or "----------"
        print(f"  [{severity:>8}] {date}  {r.id}  {r.title}")
        print(f"             {r.detail_url}")


def _cmd_search(args: argparse.Namespace) -> int:
    config = _load(args.config)
    response = build_aggregator(config).search(args.query, filter=args.filter, sort=args.sort)
    if not response.ok:
        print(f"❌ {response.error}")
        return 1

    if args.json:
        print(json.dumps(response.to_payload(), indent=2, ensure_ascii=False))
    else:
        _print_results(response)

    if args.report:
        write_markdown_report(args.report, response)
        print(f"📝 Report written to {args.report}")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    config = _load(args.config)
    result = check_sources(config)
    if args.json:
        print(json.dumps(result, indent=2))
        return 0
    for s in result["sources"]:
        icon = _STATUS_ICONS.get(s["status"], "❔")
        print(f"  {icon} {s['source']}: {s['status']} ({s['responseTime']} ms)")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    config = _load(args.config)
    uvicorn.run(create_app(config=config), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="secresearch", description="Multi-source vulnerability search")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Path to secresearch.yaml/.json")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("search", help="Search all configured sources")
    s.add_argument("query")
    s.add_argument(
        "--filter",
        default="all",
        choices=["all", *FILTER_CATEGORIES, HIGH_SEVERITY],
    )
    s.add_argument("--sort", default="date", choices=SORT_KEYS)
    s.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    s.add_argument("--report", type=Path, default=None, help="Write a Markdown report to this path")
    s.set_defaults(func=_cmd_search)

    st = sub.add_parser("status", help="Probe every upstream source")
    st.add_argument("--json", action="store_true")
    st.set_defaults(func=_cmd_status)

    sv = sub.add_parser("serve", help="Run the HTTP API")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8000)
    sv.set_defaults(func=_cmd_serve)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
