"""
Review Scout: command line entry point.

Usage:
    python -m reviewscout.main scrape "https://www.airbnb.com/rooms/12345678" --max-reviews 20 --top 5
    python -m reviewscout.main analyze reviews.json --top 5 --property-name "Lake Cabin"
    python -m reviewscout.main rank reviews.json
    python -m reviewscout.main serve --port 3000
"""

from __future__ import annotations

# Load .env before anything reads the environment
import reviewscout.config  # noqa: F401, E402

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Any, Optional

import structlog
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from reviewscout.analysis.analyzer import ReviewAnalyzer
from reviewscout.analysis.selector import ReviewSelector
from reviewscout.config import get_settings
from reviewscout.errors import ReviewScoutError
from reviewscout.models import AcquisitionTier
from reviewscout.observability import metrics as obs_metrics
from reviewscout.observability.log_config import configure_logging
from reviewscout.tools.fetcher import TieredReviewFetcher

_TIER_STYLE: dict[str, str] = {
    AcquisitionTier.RENDERED.value: "bold #16a34a",
    AcquisitionTier.PARSED.value: "bold #0ea5e9",
    AcquisitionTier.SYNTHETIC.value: "bold #f59e0b",
}

_CUSTOM_THEME = Theme({
    "log.key": "#64748b",
    "log.val": "#94a3b8",
    "primary": "#ea580c",
})

console = Console(theme=_CUSTOM_THEME, highlight=False)
# Log lines go to stderr so --json and analyze output stay parseable
log_console = Console(theme=_CUSTOM_THEME, highlight=False, stderr=True)


class _RichStructlogRenderer:
    """Structlog processor that prints events through Rich and drops them."""

    _SKIP_KEYS = frozenset({"event", "level", "timestamp", "_record"})

    def __call__(self, logger_: object, method: str, event_dict: dict) -> str:  # noqa: ARG002
        event = event_dict.get("event", "")
        level = event_dict.get("level", "info").lower()

        if event == "tier_fallback_triggered":
            from_tier = event_dict.get("from_tier", "?")
            to_tier = event_dict.get("to_tier", "?")
            log_console.print(
                f"  [bold #f59e0b]╔══ TIER FALLBACK ══╗[/bold #f59e0b]  "
                f"[{_TIER_STYLE.get(from_tier, 'white')}]{from_tier}[/] [bold #ea580c]→[/bold #ea580c] "
                f"[{_TIER_STYLE.get(to_tier, 'white')}]{to_tier}[/]"
            )
            raise structlog.DropEvent()

        kv_parts = []
        for k, v in event_dict.items():
            if k in self._SKIP_KEYS:
                continue
            vs = str(v)
            if len(vs) > 120:
                vs = vs[:117] + "…"
            kv_parts.append(f"[log.key]{k}[/log.key]=[log.val]{escape(vs)}[/log.val]")
        kv_str = "  ".join(kv_parts)

        if level == "warning":
            prefix = "[bold #f59e0b]⚠[/bold #f59e0b]"
            ev_fmt = f"[bold #f59e0b]{event}[/bold #f59e0b]"
        elif level in ("error", "critical"):
            prefix = "[bold #dc2626]✗[/bold #dc2626]"
            ev_fmt = f"[bold #dc2626]{event}[/bold #dc2626]"
        elif level == "debug":
            prefix = "[#64748b]·[/#64748b]"
            ev_fmt = f"[#64748b]{event}[/#64748b]"
        else:
            prefix = "[#ea580c]▪[/#ea580c]"
            ev_fmt = f"[bold #e2e8f0]{event}[/bold #e2e8f0]"

        log_console.print(f"  {prefix} {ev_fmt}  {kv_str}")
        raise structlog.DropEvent()


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _load_reviews(path: str) -> list[Any]:
    """A JSON list of strings, or an object with a "reviews" list."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("reviews", [])
    return data


async def run_scrape(url: str, max_reviews: Optional[int], top: int, as_json: bool) -> int:
    """Acquire reviews and print the top ones."""
    settings = get_settings()
    if settings.observability.metrics_enabled:
        obs_metrics.start_server(port=settings.observability.metrics_port)
    if not as_json:
        console.print(
            Panel(
                f"Listing: [bold #e2e8f0]{url}[/bold #e2e8f0]\n"
                f"Max reviews: [#94a3b8]{max_reviews or settings.analyzer.default_max_reviews}[/#94a3b8]  ·  "
                f"Top: [#94a3b8]{top}[/#94a3b8]",
                title="[#ea580c] Review Scout — Acquisition[/#ea580c]",
                border_style="#ea580c",
            )
        )

    start = time.time()
    result = await TieredReviewFetcher().acquire(url, max_reviews=max_reviews)
    top_reviews = ReviewSelector().select(result.review_texts, top)

    if as_json:
        payload = result.to_payload()
        payload["topReviews"] = top_reviews
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    table = Table(title="Acquisition Summary", border_style="#ea580c", title_style="bold #ea580c")
    table.add_column("Field", style="bold #94a3b8")
    table.add_column("Value", style="#e2e8f0")
    table.add_row("Listing", result.listing_id)
    table.add_row("Property", escape(result.metadata.title))
    table.add_row("Location", escape(result.metadata.location))
    table.add_row("Tier", f"[{_TIER_STYLE[result.tier.value]}]{result.tier.value}[/]")
    table.add_row("Reviews", str(result.review_count))
    table.add_row("Duration", f"{time.time() - start:.1f}s")
    if result.diagnostic:
        table.add_row("Diagnostic", f"[#f59e0b]{escape(result.diagnostic)}[/#f59e0b]")
    console.print(table)

    for i, text in enumerate(top_reviews, 1):
        console.print(Panel(escape(text), title=f"[#ea580c]#{i}[/#ea580c]", border_style="#64748b"))
    return 0


def run_analyze(path: str, top: Optional[int], property_name: Optional[str]) -> int:
    result = ReviewAnalyzer().analyze(_load_reviews(path), max_reviews=top, property_name=property_name)
    print(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))
    return 0


def run_rank(path: str) -> int:
    """Full ranking with the per-rule breakdown, for tuning the heuristics."""
    ranked = ReviewSelector().rank(_load_reviews(path))
    table = Table(title="Review Ranking", border_style="#ea580c", title_style="bold #ea580c")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right", style="bold #ea580c")
    table.add_column("Len", justify="right")
    table.add_column("Positive", style="#94a3b8")
    table.add_column("Detail", style="#94a3b8")
    table.add_column("Review", style="#e2e8f0")
    for pos, r in enumerate(ranked, 1):
        b = r.breakdown
        preview = r.text if len(r.text) <= 80 else r.text[:77] + "..."
        table.add_row(
            str(pos),
            str(r.score),
            f"{b.length} (+{b.length_score})",
            ", ".join(b.positive_keywords) or "—",
            ", ".join(b.detail_keywords) or "—",
            escape(preview),
        )
    console.print(table)
    return 0


def run_serve(host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    settings = get_settings()
    if settings.observability.metrics_enabled:
        obs_metrics.start_server(port=settings.observability.metrics_port)
    uvicorn.run(
        "reviewscout.api:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Review Scout")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    sc = sub.add_parser("scrape", help="Acquire reviews for a listing URL")
    sc.add_argument("url", help="Listing URL containing /rooms/<id>")
    sc.add_argument("--max-reviews", type=_positive_int, default=None, help="Acquisition cap (default 20)")
    sc.add_argument("--top", type=int, default=5, help="How many top reviews to show")
    sc.add_argument("--json", action="store_true", help="Print the result envelope as JSON")

    an = sub.add_parser("analyze", help="Select top reviews from a JSON file")
    an.add_argument("file", help="JSON list of review strings")
    an.add_argument("--top", type=int, default=None, help="How many reviews to keep (default 5)")
    an.add_argument("--property-name", default=None)

    rk = sub.add_parser("rank", help="Score and rank every review in a JSON file")
    rk.add_argument("file", help="JSON list of review strings")

    sv = sub.add_parser("serve", help="Run the HTTP API")
    sv.add_argument("--host", default=None)
    sv.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)
    if args.command == "scrape" and args.json:
        configure_logging(level=args.log_level, fmt="json")
    else:
        configure_logging(level=args.log_level, renderer=_RichStructlogRenderer())

    try:
        if args.command == "scrape":
            return asyncio.run(run_scrape(args.url, args.max_reviews, args.top, args.json))
        if args.command == "analyze":
            return run_analyze(args.file, args.top, args.property_name)
        if args.command == "rank":
            return run_rank(args.file)
        if args.command == "serve":
            return run_serve(args.host, args.port)
    except ReviewScoutError as e:
        console.print(f"[bold #dc2626]✗ {e}[/bold #dc2626]")
        return 2
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
