"""Command-line interface for DealTriage.

Run via: python -m dealtriage.cli <command>
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .analysis.calculator import MetricCalculator
from .analysis.scoring import ScoreEngine
from .config import Settings
from .errors import DealTriageError
from .models.lead import QueueType
from .models.property import InvestmentAnalysis, Property, ScoringVariant
from .services.lead_service import LeadService
from .storage.lead_store import LeadStore

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _score_str(score: Optional[float]) -> str:
    if score is None:
        return "[dim]N/A[/dim]"
    if score >= 8:
        return f"[green]{score:.0f}[/green]"
    if score >= 5:
        return f"[yellow]{score:.0f}[/yellow]"
    return f"[red]{score:.0f}[/red]"


def print_analysis(analysis: InvestmentAnalysis) -> None:
    m = analysis.metrics
    table = Table(title=analysis.address, show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Rent ratio", f"{m.rent_ratio:.2%}")
    table.add_row("ARV ratio", f"{m.arv_ratio:.1%}")
    table.add_row("Down payment", f"${m.down_payment:,.0f}")
    table.add_row("New loan", f"${m.new_loan:,.0f} ({m.new_loan_percent:.1%} of ARV)")
    table.add_row("Home equity", f"${m.home_equity:,.0f}")
    table.add_row("Monthly cashflow", f"${m.monthly_cashflow:,.0f}")
    table.add_row("MAO", f"${m.mao:,}")
    table.add_row("Spread", f"{m.spread_percent:.1f}%")

    if analysis.variant == ScoringVariant.LEGACY and analysis.legacy:
        table.add_row("Legacy score", _score_str(analysis.legacy.total_score))
    else:
        table.add_row("Hold score", _score_str(analysis.hold_score))
        table.add_row("Flip score", _score_str(analysis.flip_score))
        if analysis.perfect_rent is not None:
            table.add_row("Rent for Hold 10", f"${analysis.perfect_rent:,.0f}")
        if analysis.perfect_arv is not None:
            table.add_row("ARV for Flip 10", f"${analysis.perfect_arv:,.0f}")

    console.print(table)


def cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    prop = Property(
        address=args.address,
        listing_price=args.listing or args.offer,
        offer_price=args.offer,
        rehab_costs=args.rehab,
        potential_rent=args.rent,
        arv=args.arv,
        square_footage=args.sqft,
        units=args.units,
    )
    variant = ScoringVariant.LEGACY if args.legacy else ScoringVariant.DUAL
    engine = ScoreEngine(MetricCalculator(settings))
    print_analysis(engine.analyze(prop, variant))
    return 0


def _service(args: argparse.Namespace, settings: Settings) -> LeadService:
    store = LeadStore(Path(args.db) if args.db else None, settings=settings)
    return LeadService(store, settings=settings)


def cmd_queue(args: argparse.Namespace, settings: Settings) -> int:
    service = _service(args, settings)
    page = service.get_queue(args.type, args.page, args.page_size, args.search)

    counts = page.queue_counts
    console.print(
        f"[bold]Action now[/bold] {counts.action_now}  "
        f"[bold]Follow up[/bold] {counts.follow_up}  "
        f"[bold]Negotiating[/bold] {counts.negotiating}  "
        f"[bold]All[/bold] {counts.all}  "
        f"[bold]Archived[/bold] {counts.archived}"
    )

    if not page.leads:
        console.print("[yellow]No leads in this queue.[/yellow]")
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Priority")
    table.add_column("Address", max_width=40)
    table.add_column("Status")
    table.add_column("Price", justify="right")
    table.add_column("MAO", justify="right")
    table.add_column("Last contact")
    for item in page.leads:
        lead = item.lead
        table.add_row(
            _score_str(lead.lead_score),
            item.priority.value,
            lead.address[:40],
            lead.status.value,
            f"${lead.listing_price:,.0f}",
            f"${lead.mao:,}" if lead.mao is not None else "N/A",
            lead.last_contact_date.date().isoformat() if lead.last_contact_date else "-",
        )
    console.print(table)
    p = page.pagination
    console.print(f"[dim]Page {p.page}/{p.total_pages} ({p.total_items} leads)[/dim]")
    return 0


def cmd_ingest(args: argparse.Namespace, settings: Settings) -> int:
    service = _service(args, settings)
    result = asyncio.run(
        service.ingest_lead(
            {
                "address": args.address,
                "listing_price": args.price,
                "square_footage": args.sqft,
                "units": args.units,
                "source": args.source,
            }
        )
    )
    lead = result.lead
    if result.was_consolidated and result.consolidation:
        c = result.consolidation
        change = (
            f"{c.price_change_percent:+.1f}%" if c.price_change_percent is not None else "n/a"
        )
        console.print(
            f"[cyan]Consolidated into {lead.id}[/cyan]: "
            f"${c.old_price:,.0f} -> ${c.new_price:,.0f} ({change})"
        )
    else:
        console.print(f"[green]Created lead {lead.id}[/green] ({lead.address})")
    if result.evaluation:
        console.print(f"Score: {_score_str(result.evaluation.score)}  MAO: {result.evaluation.mao}")
    return 0


def cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    service = _service(args, settings)
    page = service.get_evaluation_history(args.lead_id, args.limit, 0)
    table = Table(show_header=True, header_style="bold")
    table.add_column("Evaluated")
    table.add_column("Tier")
    table.add_column("Trigger")
    table.add_column("Score", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Errors", justify="right")
    for item in page.items:
        table.add_row(
            item.evaluated_at.strftime("%Y-%m-%d %H:%M"),
            item.tier.value,
            item.trigger_source.value,
            _score_str(item.summary.score if item.summary else None),
            f"${item.total_cost:,.2f}",
            str(len(item.errors)),
        )
    console.print(table)
    console.print(f"[dim]{len(page.items)} of {page.total} runs[/dim]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="DealTriage lead triage and deal evaluation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m dealtriage.cli analyze --offer 180000 --rehab 20000 --rent 2000 --arv 250000
  python -m dealtriage.cli queue --type action_now
  python -m dealtriage.cli ingest "12 Elm St" 150000 --sqft 1200
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--db", help="SQLite database path (default: ~/.dealtriage/leads.db)")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Score a property")
    analyze.add_argument("--address", default="Untitled property")
    analyze.add_argument("--offer", type=float, required=True)
    analyze.add_argument("--rehab", type=float, default=0)
    analyze.add_argument("--rent", type=float, default=0)
    analyze.add_argument("--arv", type=float, default=0)
    analyze.add_argument("--listing", type=float, default=None)
    analyze.add_argument("--sqft", type=int, default=None)
    analyze.add_argument("--units", type=int, default=1)
    analyze.add_argument("--legacy", action="store_true", help="Use the historical 4/4/2 score")
    analyze.set_defaults(func=cmd_analyze)

    queue = sub.add_parser("queue", help="List a lead queue")
    queue.add_argument("--type", choices=[q.value for q in QueueType], default="all")
    queue.add_argument("--page", type=int, default=1)
    queue.add_argument("--page-size", type=int, default=25)
    queue.add_argument("--search", default=None)
    queue.set_defaults(func=cmd_queue)

    ingest = sub.add_parser("ingest", help="Add or consolidate a lead")
    ingest.add_argument("address")
    ingest.add_argument("price", type=float)
    ingest.add_argument("--sqft", type=int, default=None)
    ingest.add_argument("--units", type=int, default=None)
    ingest.add_argument("--source", default="manual")
    ingest.set_defaults(func=cmd_ingest)

    history = sub.add_parser("history", help="Show a lead's evaluation runs")
    history.add_argument("lead_id")
    history.add_argument("--limit", type=int, default=20)
    history.set_defaults(func=cmd_history)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)
    settings = Settings()
    try:
        return args.func(args, settings)
    except DealTriageError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    except PydanticValidationError as e:
        console.print(f"[red]Invalid input:[/red] {e.errors()[0]['msg']}")
        return 2
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
