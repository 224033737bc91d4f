#!/usr/bin/env python3
"""
Sports Betting CLI

Command-line interface for NBA/NFL predictions and value bets.
"""

import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from services.alerts import AlertPreferences, TYPE_ICONS, format_alert_message
from services.betting_stats import format_spread
from services.game_service import SPORT_ICONS, GameAnalysis, GameService
from services.sports import Sport, to_sport
from services.value_calculator import BetType, ValueBet, confidence_style

app = typer.Typer(help="NBA/NFL Betting Analysis CLI")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _parse_sport(sport: str) -> Sport:
    try:
        return to_sport(sport)
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.command()
def today(
    sport: str = typer.Argument("nba", help="nba or nfl"),
    min_edge: float = typer.Option(0.0, "--min-edge", "-e", help="Minimum edge to show"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Show all games, not just value bets"),
):
    """Show today's games and value bets."""
    sport = _parse_sport(sport)
    console.print(f"\n[bold blue]{SPORT_ICONS[sport]} {sport.value.upper()} Value Bets[/bold blue]")
    console.print(f"[dim]Date: {date.today().strftime('%A, %B %d, %Y')}[/dim]\n")

    async def run():
        try:
            service = GameService()

            with console.status("[bold green]Fetching data from ESPN and Odds API..."):
                analyses = await service.get_slate_analysis(sport)

            if not analyses:
                console.print("[yellow]No upcoming games found for today.[/yellow]")
                return

            console.print(f"[green]Found {len(analyses)} games today[/green]\n")

            # Show value bets first
            value_count = 0
            for analysis in analyses:
                value_bets = [vb for vb in analysis.value_bets if vb.edge >= min_edge]
                if value_bets:
                    value_count += len(value_bets)
                    _print_game_with_values(analysis, value_bets)

            if value_count == 0:
                console.print("[yellow]No value bets found meeting minimum edge criteria.[/yellow]\n")
            else:
                console.print(f"\n[bold green]Total value bets found: {value_count}[/bold green]\n")

            if show_all:
                console.print("\n[bold]All Games Today:[/bold]")
                _print_games_table(analyses)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            if "ODDS_API_KEY" in str(e):
                console.print("\n[yellow]Make sure you have set your API keys in the .env file:[/yellow]")
                console.print("  ODDS_API_KEY=your_key_here")
                console.print("  BALLDONTLIE_API_KEY=your_key_here  (optional, real NBA ATS data)")
            raise

    asyncio.run(run())


@app.command()
def game(
    home: str = typer.Argument(..., help="Home team name"),
    away: str = typer.Argument(..., help="Away team name"),
    sport: str = typer.Option("nba", "--sport", "-s", help="nba or nfl"),
):
    """Analyze a specific matchup on today's scoreboard."""
    sport = _parse_sport(sport)

    async def run():
        try:
            service = GameService()

            with console.status(f"[bold green]Analyzing {away} @ {home}..."):
                analysis = await service.get_game_analysis(sport, home, away)

            if not analysis:
                console.print(f"[red]Could not find game: {away} @ {home}[/red]")
                return

            console.print(service.format_analysis(analysis))

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    asyncio.run(run())


@app.command()
def spreads(
    sport: str = typer.Argument("nba", help="nba or nfl"),
    min_diff: float = typer.Option(2.0, "--min-diff", "-d", help="Minimum spread difference"),
):
    """Find games where the model spread differs significantly from the market."""
    sport = _parse_sport(sport)

    async def run():
        try:
            service = GameService()

            with console.status("[bold green]Fetching spread comparisons..."):
                analyses = await service.get_slate_analysis(sport)

            spread_games = [
                a for a in analyses
                if a.market is not None and abs(a.spread_diff) >= min_diff
            ]

            if not spread_games:
                console.print(f"[yellow]No games found with spread difference >= {min_diff}[/yellow]")
                return

            spread_games.sort(key=lambda x: abs(x.spread_diff), reverse=True)

            table = Table(title="Spread Discrepancies", box=box.ROUNDED)
            table.add_column("Game", style="cyan")
            table.add_column("Model", justify="center")
            table.add_column("Market", justify="center")
            table.add_column("Diff", justify="center")
            table.add_column("Lean", justify="center")

            for a in spread_games:
                diff_color = "green" if abs(a.spread_diff) >= 4 else "yellow"

                # Model line above the market's: the market overrates the home side
                if a.spread_diff > 0:
                    lean = f"{a.away_team} {format_spread(-a.market.spread)}"
                else:
                    lean = f"{a.home_team} {format_spread(a.market.spread)}"

                table.add_row(
                    f"{a.away_team} @ {a.home_team}",
                    f"{a.home_team} {format_spread(a.prediction.predicted_spread)}",
                    f"{a.home_team} {format_spread(a.market.spread)}",
                    f"[{diff_color}]{a.spread_diff:+.1f}[/{diff_color}]",
                    lean
                )

            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    asyncio.run(run())


@app.command()
def totals(
    sport: str = typer.Argument("nba", help="nba or nfl"),
    min_diff: float = typer.Option(3.0, "--min-diff", "-d", help="Minimum total difference"),
):
    """Find games where the model total differs significantly from the market."""
    sport = _parse_sport(sport)

    async def run():
        try:
            service = GameService()

            with console.status("[bold green]Fetching total comparisons..."):
                analyses = await service.get_slate_analysis(sport)

            total_games = [
                a for a in analyses
                if a.market is not None and abs(a.total_diff) >= min_diff
            ]

            if not total_games:
                console.print(f"[yellow]No games found with total difference >= {min_diff}[/yellow]")
                return

            total_games.sort(key=lambda x: abs(x.total_diff), reverse=True)

            table = Table(title="Total Discrepancies", box=box.ROUNDED)
            table.add_column("Game", style="cyan")
            table.add_column("Model", justify="center")
            table.add_column("Market", justify="center")
            table.add_column("Diff", justify="center")
            table.add_column("Lean", justify="center")

            for a in total_games:
                diff_color = "green" if abs(a.total_diff) >= 6 else "yellow"
                lean = "OVER" if a.total_diff > 0 else "UNDER"
                lean_color = "green" if lean == "OVER" else "red"

                table.add_row(
                    f"{a.away_team} @ {a.home_team}",
                    f"{a.prediction.predicted_total}",
                    f"{a.market.total:.1f}",
                    f"[{diff_color}]{a.total_diff:+.1f}[/{diff_color}]",
                    f"[{lean_color}]{lean}[/{lean_color}]"
                )

            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    asyncio.run(run())


@app.command()
def alerts(
    sport: str = typer.Option(None, "--sport", "-s", help="nba or nfl (default: both)"),
    min_edge: float = typer.Option(3.0, "--min-edge", "-e", help="Minimum value bet edge"),
):
    """Show alerts for today's slates."""
    sports = (_parse_sport(sport),) if sport else (Sport.NBA, Sport.NFL)

    async def run():
        try:
            service = GameService()
            preferences = AlertPreferences(min_edge=min_edge, sports=sports)

            with console.status("[bold green]Generating alerts..."):
                found = await service.get_alerts(preferences)

            if not found:
                console.print("[yellow]No alerts right now.[/yellow]")
                return

            for alert in found:
                icon = TYPE_ICONS[alert.type]
                console.print(Panel(format_alert_message(alert), title=icon, box=box.ROUNDED))

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    asyncio.run(run())


@app.command()
def predict(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with sport, home, away (and optional h2h, market)"),
):
    """Predict a game from team snapshots in a JSON file."""
    from api.main import PredictRequest, predict as predict_endpoint

    try:
        request = PredictRequest.model_validate(json.loads(path.read_text()))
        response = asyncio.run(predict_endpoint(request))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    p = response.prediction
    conf_color = {"high": "green", "medium": "yellow"}.get(p.confidence, "dim")

    console.print(Panel(f"{p.away_team} @ {p.home_team}", style="bold cyan", box=box.ROUNDED))
    console.print(f"  Score: {p.away_team} {p.predicted_away_score} - {p.home_team} {p.predicted_home_score}")
    console.print(f"  Spread: {p.home_team} {format_spread(p.predicted_spread)} | Total: {p.predicted_total}")
    console.print(f"  Winner: {p.predicted_winner} ({p.win_probability}%) | Confidence: [{conf_color}]{p.confidence.upper()}[/{conf_color}]")
    console.print(f"  Power: {p.home_power:.1f} / {p.away_power:.1f}\n")

    table = Table(title="Factors", box=box.SIMPLE)
    table.add_column("Factor", style="cyan")
    table.add_column("Impact", justify="right")
    table.add_column("Detail")
    for f in p.factors:
        table.add_row(f.name, f"{f.impact:+.1f}", f.description)
    console.print(table)

    for vb in response.value_bets:
        color = {"high": "green", "medium": "yellow"}.get(vb.confidence, "dim")
        console.print(f"  [{color}]🎯 {vb.bet_description}[/{color}]  (edge {vb.edge:g}, {vb.confidence})")
        console.print(f"    {vb.explanation}")


# ==================== HELPER FUNCTIONS ====================

def _print_game_with_values(analysis: GameAnalysis, value_bets: List[ValueBet]):
    """Print a game with its value bets."""
    p = analysis.prediction
    time_str = analysis.game_time.strftime("%I:%M %p")
    header = f"{analysis.away_team} @ {analysis.home_team} ({time_str})"

    console.print(Panel(header, style="bold cyan", box=box.ROUNDED))

    console.print(f"  [dim]Model:[/dim]  {analysis.home_team} {format_spread(p.predicted_spread)} | Total: {p.predicted_total} | Win: {p.home_win_probability}%")
    if analysis.market is not None:
        m = analysis.market
        console.print(f"  [dim]Market:[/dim] {analysis.home_team} {format_spread(m.spread)} | Total: {m.total:g} | ML: {m.home_moneyline:+d}/{m.away_moneyline:+d}")

    console.print()
    for vb in value_bets:
        _print_value_bet(vb)
    console.print()


def _print_value_bet(vb: ValueBet):
    """Print a single value bet."""
    conf_color = confidence_style(vb.confidence)

    if vb.bet_type == BetType.SPREAD:
        bet_str = f"📊 SPREAD: {vb.recommendation}"
        edge_str = f"{vb.edge:.1f} pts"
    elif vb.bet_type in (BetType.TOTAL_OVER, BetType.TOTAL_UNDER):
        bet_str = f"📈 TOTAL: {vb.recommendation}"
        edge_str = f"{vb.edge:.1f} pts"
    else:
        bet_str = f"💰 ML: {vb.recommendation}"
        edge_str = f"{vb.edge:.0f}%"

    console.print(f"  [{conf_color}]{bet_str} ({vb.bet_side.name})[/{conf_color}]")
    console.print(f"    {vb.explanation} | [bold]Edge: {edge_str}[/bold] | {vb.confidence.value.upper()}")


def _print_games_table(analyses: List[GameAnalysis]):
    """Print a table of all games."""
    table = Table(box=box.SIMPLE)
    table.add_column("Time", style="dim")
    table.add_column("Game", style="cyan")
    table.add_column("Model Spread", justify="center")
    table.add_column("Market Spread", justify="center")
    table.add_column("Total", justify="center")
    table.add_column("Conf", justify="center")
    table.add_column("Values", justify="center")

    for a in analyses:
        p = a.prediction
        time_str = a.game_time.strftime("%I:%M %p")

        market_spread = format_spread(a.market.spread) if a.market is not None else "-"
        market_total = f"{a.market.total:g}" if a.market is not None else "-"

        value_count = len(a.value_bets)
        value_str = f"[green]{value_count}[/green]" if value_count > 0 else "[dim]0[/dim]"
        style = confidence_style(p.confidence)

        table.add_row(
            time_str,
            f"{a.away_team} @ {a.home_team}",
            f"{a.home_team} {format_spread(p.predicted_spread)}",
            f"{a.home_team} {market_spread}",
            f"M: {p.predicted_total} / V: {market_total}",
            f"[{style}]{p.confidence.value}[/{style}]",
            value_str
        )

    console.print(table)


if __name__ == "__main__":
    app()
