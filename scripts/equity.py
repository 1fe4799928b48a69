#!/usr/bin/env python3
"""Calculate hold'em equity for a hand against random opponents."""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from txequity.game.cards import parse_cards, format_cards
from txequity.game.equity import (
    EquityCalculator,
    EquityConfig,
    EquityReport,
    clamp_opponents,
    should_calculate,
)
from txequity.game.evaluator import HandCategory, evaluate_with_best_five


def main():
    parser = argparse.ArgumentParser(
        description="Calculate win/tie/lose odds and final hand distribution"
    )
    parser.add_argument(
        "-H", "--hole",
        required=True,
        help="Hero hole cards (e.g., 'AsKh')",
    )
    parser.add_argument(
        "-b", "--board",
        default="",
        help="Board cards: none, flop, turn or river (e.g., 'Qs Js Ts')",
    )
    parser.add_argument(
        "-o", "--opponents",
        type=int,
        default=1,
        help="Number of opponents, 1-8 (default: 1)",
    )
    parser.add_argument(
        "-i", "--iterations",
        type=int,
        default=120_000,
        help="Monte Carlo iterations (default: 120000)",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        help="Worker threads (default: cpu count - 1)",
    )
    parser.add_argument(
        "-s", "--seed",
        type=int,
        help="Random seed for reproducible simulations",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()
    console = Console()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console)],
        )

    try:
        hole = parse_cards(args.hole)
        board = parse_cards(args.board)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        return 1

    if not should_calculate(hole, board):
        console.print("[red]Need 2 hole cards and a board of 0, 3, 4 or 5 cards[/]")
        return 1

    opponents = clamp_opponents(args.opponents)
    if opponents != args.opponents:
        console.print(f"[yellow]Opponents clamped to {opponents}[/]")

    console.print(f"[bold]Hole:[/] {format_cards(hole)}")
    console.print(f"[bold]Board:[/] {format_cards(board) or '-'}")
    console.print(f"[bold]Opponents:[/] {opponents}")
    console.print()

    config = EquityConfig(
        target_iterations=args.iterations,
        num_workers=args.workers,
        seed=args.seed,
    )
    calculator = EquityCalculator(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Calculating...")

        def callback(report: EquityReport):
            progress.update(
                task,
                description=(
                    f"{report.trials:,} trials, win={report.win:.1%} "
                    f"({report.iterations_per_second:,}/s)"
                ),
            )

        try:
            report = calculator.compute(hole, opponents, board, progress=callback)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            return 1

    _display_result(console, report)
    _display_distribution(console, report)

    if report.best_five:
        rank, _ = evaluate_with_best_five(hole + board)
        console.print(
            f"\n[bold]Best hand:[/] {format_cards(report.best_five)} "
            f"[dim]({rank.describe()})[/]"
        )

    if args.verbose:
        stats = calculator.cache.stats()
        console.print(
            f"\n[dim]Cache: {stats['entries']:,} entries, "
            f"hit rate {stats['hit_rate']:.1%}[/]"
        )

    return 0


def _display_result(console: Console, report: EquityReport) -> None:
    """Display win/tie/lose summary."""
    title = "Exact" if report.method == "exact" else "Monte Carlo"
    table = Table(title=f"Equity ({title}, {report.trials:,} trials)", show_header=False)
    table.add_column("Outcome", style="cyan")
    table.add_column("Probability", justify="right")

    table.add_row("Win", f"[green]{report.win:.2%}[/]")
    table.add_row("Tie", f"{report.tie:.2%}")
    table.add_row("Lose", f"[red]{report.lose:.2%}[/]")
    if report.iterations_per_second:
        table.add_row("Rate", f"{report.iterations_per_second:,} it/s")

    console.print(table)


def _display_distribution(console: Console, report: EquityReport) -> None:
    """Display hero's final hand category distribution, strongest first."""
    table = Table(title="Hero Final Hand", show_header=True, header_style="bold")
    table.add_column("Hand", style="white", width=18)
    table.add_column("Frequency", justify="right")

    for category in sorted(HandCategory, reverse=True):
        freq = report.histogram.get(category, 0.0)
        if freq:
            table.add_row(category.label, f"{freq:.2%}")
        else:
            table.add_row(f"[dim]{category.label}[/]", "[dim]-[/]")

    console.print(table)


if __name__ == "__main__":
    sys.exit(main())
