"""
Game Service

Combines ESPN team data, betting history and sportsbook odds with the
prediction model to provide game analysis and value bet identification.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar, Union

from clients.espn import ESPNClient, ESPNClientError, ESPNTeam, ScheduledGame, get_espn_client
from clients.odds_api import OddsAPIClient, OddsAPIError, find_event, get_odds_client, to_market_line
from .alerts import Alert, AlertPreferences, GameWithPrediction, generate_alerts
from .betting_data_service import (
    BettingDataService,
    TeamBettingData,
    create_betting_data_service,
    get_data_source_summary,
)
from .betting_stats import (
    LineMovement,
    TeamTrends,
    calculate_rest_advantage,
    calculate_trends,
    detect_line_movement,
    format_ats_record,
    format_spread,
    format_totals_record,
)
from .predictor import GamePrediction, GamePredictor, HeadToHead, TeamSnapshot
from .sports import Sport, to_sport
from .value_calculator import MarketLine, ValueBet, ValueCalculator

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_GAMES = 10
BATCH_SIZE = 4
ALERT_GAMES_PER_SPORT = 10

SPORT_ICONS = {Sport.NBA: "🏀", Sport.NFL: "🏈"}


@dataclass
class GameAnalysis:
    """Complete analysis for a single game."""
    sport: Sport
    game: ScheduledGame
    home: TeamSnapshot
    away: TeamSnapshot
    prediction: GamePrediction
    market: Optional[MarketLine]
    value_bets: List[ValueBet]
    home_data: Optional[TeamBettingData] = None
    away_data: Optional[TeamBettingData] = None
    head_to_head: Optional[HeadToHead] = None
    line_movement: Optional[LineMovement] = None

    @property
    def game_id(self) -> str:
        return self.game.id

    @property
    def home_team(self) -> str:
        return self.game.home.name

    @property
    def away_team(self) -> str:
        return self.game.away.name

    @property
    def game_time(self) -> datetime:
        return self.game.date

    @property
    def home_trends(self) -> TeamTrends:
        return calculate_trends(self.home.recent_games, self.sport)

    @property
    def away_trends(self) -> TeamTrends:
        return calculate_trends(self.away.recent_games, self.sport)

    @property
    def rest_advantage(self) -> Optional[int]:
        """Home days of rest minus away, when both are known."""
        if self.home.rest is None or self.away.rest is None:
            return None
        return calculate_rest_advantage(self.home.rest, self.away.rest)

    @property
    def spread_diff(self) -> Optional[float]:
        """Model spread minus market spread."""
        if self.market is None:
            return None
        return self.prediction.predicted_spread - self.market.spread

    @property
    def total_diff(self) -> Optional[float]:
        if self.market is None:
            return None
        return self.prediction.predicted_total - self.market.total

    def data_sources(self) -> Dict[str, Any]:
        sources = {}
        if self.home_data is not None:
            sources["home"] = get_data_source_summary(self.home_data)
        if self.away_data is not None:
            sources["away"] = get_data_source_summary(self.away_data)
        return sources

    def to_game_with_prediction(self) -> GameWithPrediction:
        return GameWithPrediction(
            game_id=self.game_id,
            home_team=self.home_team,
            away_team=self.away_team,
            game_time=self.game_time,
            sport=self.sport,
            prediction=self.prediction,
            value_bets=self.value_bets,
            home_injuries=self.home.injuries,
            away_injuries=self.away.injuries,
            line_movement=self.line_movement,
        )


class GameService:
    """
    Service for fetching and analyzing games.
    """

    def __init__(
        self,
        espn_client: Optional[ESPNClient] = None,
        odds_clients: Optional[Dict[Sport, OddsAPIClient]] = None,
        betting_data: Optional[BettingDataService] = None,
        predictor: Optional[GamePredictor] = None,
        value_calculator: Optional[ValueCalculator] = None,
    ):
        self.espn = espn_client or get_espn_client()
        self.betting_data = betting_data or create_betting_data_service()
        self.predictor = predictor or GamePredictor()
        self.calculator = value_calculator or ValueCalculator()

        # Missing = not tried yet, None = no API key
        self._odds_clients: Dict[Sport, Optional[OddsAPIClient]] = dict(odds_clients or {})

    # ==================== FETCH HELPERS ====================

    def _odds_client(self, sport: Sport) -> Optional[OddsAPIClient]:
        if sport not in self._odds_clients:
            try:
                self._odds_clients[sport] = get_odds_client(sport)
            except OddsAPIError as e:
                logger.warning(f"Odds unavailable for {sport.value}: {e}")
                self._odds_clients[sport] = None
        return self._odds_clients[sport]

    @staticmethod
    async def _safe(call: Awaitable[T], default: T, label: str) -> T:
        """Await a feed call, degrading to `default` on provider errors."""
        try:
            return await call
        except (ESPNClientError, OddsAPIError) as e:
            logger.warning(f"{label} failed: {e}")
            return default

    async def _get_odds_events(self, sport: Sport) -> List[Dict[str, Any]]:
        client = self._odds_client(sport)
        if client is None:
            return []
        return await self._safe(client.get_odds(), [], f"{sport.value} odds")

    async def _build_snapshot(
        self,
        sport: Sport,
        team: ESPNTeam,
        is_home: bool,
        game_date: datetime,
    ) -> Optional[Tuple[TeamSnapshot, TeamBettingData]]:
        """Everything known about one side of a matchup, or None without season stats."""
        stats, recent, injuries = await asyncio.gather(
            self._safe(self.espn.get_team_stats(sport, team.id), None, f"{team.name} stats"),
            self._safe(self.espn.get_recent_games(sport, team.id, RECENT_GAMES), [], f"{team.name} schedule"),
            self._safe(self.espn.get_team_injuries(sport, team.id), [], f"{team.name} injuries"),
        )
        if stats is None:
            return None

        betting = await self.betting_data.get_team_betting_data(sport, team.id, recent, game_date)

        snapshot = TeamSnapshot(
            id=team.id,
            name=team.name,
            points_for_per_game=stats.points_per_game,
            points_against_per_game=stats.points_allowed_per_game,
            point_differential=stats.point_differential,
            recent_games=tuple(recent),
            injuries=tuple(injuries),
            ats_record=betting.ats.data,
            totals_record=betting.totals.data,
            rest=betting.rest.data,
            is_home=is_home,
        )
        return snapshot, betting

    # ==================== ANALYSIS ====================

    async def analyze_game(
        self,
        sport: Union[Sport, str],
        game: ScheduledGame,
        odds_events: List[Dict[str, Any]],
        include_head_to_head: bool = False,
    ) -> Optional[GameAnalysis]:
        """
        Predict one game and price it against the market.

        Returns None when either team's season stats are unavailable.
        """
        sport = to_sport(sport)

        home_result, away_result = await asyncio.gather(
            self._build_snapshot(sport, game.home, True, game.date),
            self._build_snapshot(sport, game.away, False, game.date),
        )
        if home_result is None or away_result is None:
            logger.warning(f"Skipping {game.away.name} @ {game.home.name}: team stats unavailable")
            return None

        home, home_data = home_result
        away, away_data = away_result

        h2h = None
        if include_head_to_head:
            h2h = await self._safe(
                self.espn.get_head_to_head(sport, home.id, away.id), None, "head-to-head"
            )

        prediction = self.predictor.predict_game(home, away, sport, h2h)

        market = None
        line_movement = None
        event = find_event(odds_events, game.home.name, game.home.abbreviation)
        if event is not None:
            market = to_market_line(event, sport)
            line_movement = detect_line_movement(event)

        value_bets = self.calculator.find_value_bets(prediction, market, game.id)

        return GameAnalysis(
            sport=sport,
            game=game,
            home=home,
            away=away,
            prediction=prediction,
            market=market,
            value_bets=value_bets,
            home_data=home_data,
            away_data=away_data,
            head_to_head=h2h,
            line_movement=line_movement,
        )

    async def get_slate_analysis(
        self,
        sport: Union[Sport, str],
        limit: Optional[int] = None,
    ) -> List[GameAnalysis]:
        """
        Get complete analysis for all of today's upcoming games.

        Args:
            sport: "nba" or "nfl"
            limit: Analyse at most this many games

        Returns:
            List of GameAnalysis objects, by game time
        """
        sport = to_sport(sport)
        games, odds_events = await asyncio.gather(
            self._safe(self.espn.get_scoreboard(sport), [], f"{sport.value} scoreboard"),
            self._get_odds_events(sport),
        )
        games = [g for g in games if not g.completed][:limit]
        logger.info(f"Loaded {len(games)} {sport.value} games and {len(odds_events)} odds events")

        analyses: List[GameAnalysis] = []
        for start in range(0, len(games), BATCH_SIZE):
            batch = games[start:start + BATCH_SIZE]
            results = await asyncio.gather(*(self.analyze_game(sport, g, odds_events) for g in batch))
            analyses.extend(a for a in results if a is not None)

        analyses.sort(key=lambda a: a.game_time)
        return analyses

    async def get_game_analysis(
        self,
        sport: Union[Sport, str],
        home_team: str,
        away_team: str,
    ) -> Optional[GameAnalysis]:
        """
        Get analysis for a specific matchup on today's scoreboard.

        Team names are matched case-insensitively against full names and
        nicknames. Includes head-to-head history.

        Returns:
            GameAnalysis or None if the game isn't on the scoreboard
        """
        sport = to_sport(sport)
        games = await self._safe(self.espn.get_scoreboard(sport), [], f"{sport.value} scoreboard")

        home_id = self.espn.find_team_id_by_name(sport, home_team)
        away_id = self.espn.find_team_id_by_name(sport, away_team)

        def matches(team: ESPNTeam, name: str, team_id: Optional[str]) -> bool:
            if team_id is not None:
                return team.id == team_id
            return team.name.lower() == name.lower().strip()

        game = next(
            (g for g in games if matches(g.home, home_team, home_id) and matches(g.away, away_team, away_id)),
            None,
        )
        if game is None:
            return None

        odds_events = await self._get_odds_events(sport)
        return await self.analyze_game(sport, game, odds_events, include_head_to_head=True)

    async def get_value_bets(
        self,
        sport: Union[Sport, str],
        min_edge: float = 0.0,
    ) -> List[Tuple[GameAnalysis, List[ValueBet]]]:
        """
        Get all value bets for today's games.

        Args:
            min_edge: Minimum edge to include

        Returns:
            List of (game, value_bets) tuples, best edge first
        """
        analyses = await self.get_slate_analysis(sport)

        value_games = []
        for analysis in analyses:
            filtered = [vb for vb in analysis.value_bets if vb.edge >= min_edge]
            if filtered:
                value_games.append((analysis, filtered))

        value_games.sort(key=lambda x: max(vb.edge for vb in x[1]), reverse=True)
        return value_games

    async def get_alerts(self, preferences: AlertPreferences = AlertPreferences()) -> List[Alert]:
        """Alerts across the user's sports for today's slates."""
        slates = await asyncio.gather(*(
            self.get_slate_analysis(sport, limit=ALERT_GAMES_PER_SPORT) for sport in preferences.sports
        ))
        games = [a.to_game_with_prediction() for slate in slates for a in slate]
        return generate_alerts(games, preferences)

    def get_odds_usage(self) -> Dict[str, Any]:
        return {
            sport.value: client.get_api_usage()
            for sport, client in self._odds_clients.items()
            if client is not None
        }

    # ==================== FORMATTING ====================

    def format_analysis(self, analysis: GameAnalysis) -> str:
        """Format a game analysis for display."""
        p = analysis.prediction
        output = []

        # Header
        time_str = analysis.game_time.strftime("%I:%M %p")
        output.append(f"\n{'='*60}")
        output.append(f"{SPORT_ICONS[analysis.sport]} {analysis.away_team} @ {analysis.home_team}")
        output.append(f"⏰ {time_str}")
        output.append(f"{'='*60}")

        # Prediction
        output.append(f"\n📊 Model Prediction ({p.confidence.value.upper()} confidence):")
        output.append(f"   Score: {analysis.away_team} {p.predicted_away_score} - {analysis.home_team} {p.predicted_home_score}")
        output.append(f"   Spread: {analysis.home_team} {format_spread(p.predicted_spread)}")
        output.append(f"   Total: {p.predicted_total}")
        output.append(f"   Winner: {p.predicted_winner} ({p.win_probability}%)")
        output.append(f"   Power: {analysis.home_team} {p.home_power:.1f} / {analysis.away_team} {p.away_power:.1f}")

        for factor in p.factors:
            output.append(f"   • {factor.name}: {factor.description} ({factor.impact:+.1f})")

        # Betting history
        for snapshot in (analysis.away, analysis.home):
            parts = []
            if snapshot.ats_record is not None:
                parts.append(format_ats_record(snapshot.ats_record))
            if snapshot.totals_record is not None:
                parts.append(format_totals_record(snapshot.totals_record))
            if parts:
                output.append(f"   {snapshot.name}: {' | '.join(parts)}")

        # Trends
        trends = ((analysis.away, analysis.away_trends), (analysis.home, analysis.home_trends))
        if any(snapshot.recent_games for snapshot, _ in trends):
            output.append(f"\n📈 Trends:")
            for snapshot, t in trends:
                if not snapshot.recent_games:
                    continue
                output.append(
                    f"   {snapshot.name}: Last 5 {t.form.record} | Streak {t.streak} | "
                    f"Off {t.efficiency.off_rating:g} / Def {t.efficiency.def_rating:g} | Pace {t.pace:g}"
                )
        if analysis.rest_advantage:
            output.append(f"   Rest: {analysis.home_team} {analysis.rest_advantage:+d} days vs {analysis.away_team}")

        # Market
        if analysis.market is not None:
            m = analysis.market
            output.append(f"\n💰 Market Lines ({m.bookmaker or 'consensus'}):")
            output.append(f"   Spread: {analysis.home_team} {format_spread(m.spread)}")
            output.append(f"   Total: {m.total:g}")
            output.append(f"   Moneyline: {analysis.home_team} {m.home_moneyline:+d} / {analysis.away_team} {m.away_moneyline:+d}")
            output.append(f"   Spread Diff: {analysis.spread_diff:+.1f} | Total Diff: {analysis.total_diff:+.1f} (model - market)")
            if analysis.line_movement is not None:
                lm = analysis.line_movement
                output.append(
                    f"   Line Move: {format_spread(lm.opening_spread)} → {format_spread(lm.current_spread)} "
                    f"({lm.movement_direction})"
                )
        else:
            output.append(f"\n💰 No market lines available")

        # Value Bets
        if analysis.value_bets:
            output.append(f"\n🎯 VALUE BETS FOUND:")
            for vb in analysis.value_bets:
                output.append(f"\n{self.calculator.format_value_bet(vb)}")
        else:
            output.append(f"\n❌ No value bets identified")

        return "\n".join(output)
