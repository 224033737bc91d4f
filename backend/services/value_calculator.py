"""
Value Bet Calculator

Core logic for identifying value betting opportunities by comparing
model predictions to sportsbook lines.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .predictor import Confidence, GamePrediction
from .sports import round_half_up

logger = logging.getLogger(__name__)


class InvalidMarketLineError(ValueError):
    """Raised when a market line can't be priced."""
    pass


class BetType(Enum):
    SPREAD = "spread"
    MONEYLINE = "moneyline"
    TOTAL_OVER = "total_over"
    TOTAL_UNDER = "total_under"


class BetSide(Enum):
    UNDERDOG = "underdog"
    FAVORITE = "favorite"
    OVER = "over"
    UNDER = "under"


@dataclass(frozen=True)
class MarketLine:
    """Current betting market for a game, from the home team's side."""
    spread: float            # Home team spread (e.g., -6.5)
    total: float
    home_moneyline: int
    away_moneyline: int
    bookmaker: str = ""

    def validate(self) -> None:
        for label, value in (("spread", self.spread), ("total", self.total)):
            if value is None or math.isnan(value):
                raise InvalidMarketLineError(f"Market {label} must be a number, got {value!r}")

        for label, odds in (("home_moneyline", self.home_moneyline), ("away_moneyline", self.away_moneyline)):
            if odds is None or (isinstance(odds, float) and math.isnan(odds)):
                raise InvalidMarketLineError(f"Market {label} must be a number, got {odds!r}")
            if -100 < odds < 100:
                raise InvalidMarketLineError(f"Market {label} is not valid American odds: {odds}")


@dataclass(frozen=True)
class ValueBet:
    """Identified value betting opportunity."""
    game_id: str
    bet_type: BetType
    recommendation: str              # e.g. "Celtics -3.5", "Over 221.5"
    edge: float                      # points (spread/total) or percentage points (ML)
    confidence: Confidence
    model_line: float                # Our line (spread, total or win %)
    market_line: float               # Market line (spread, total or implied %)
    explanation: str
    bet_side: BetSide
    team_to_bet: str                 # Team name, "OVER" or "UNDER"
    bet_description: str


@dataclass(frozen=True)
class ValueThresholds:
    """Minimum edges and confidence cut-offs for each bet type."""
    min_spread_edge: float = 2.0     # points
    spread_high: float = 4.0
    spread_medium: float = 3.0

    min_total_edge: float = 3.0      # points
    total_high: float = 6.0
    total_medium: float = 4.0

    min_ml_edge: float = 5.0         # percentage points
    ml_high: float = 10.0
    ml_medium: float = 7.0
    max_ml_favorite: int = -200      # never recommend ML shorter than this


DEFAULT_THRESHOLDS = ValueThresholds()


def _signed(value: float) -> str:
    """JS-style number with an explicit + for positives: 3.5 -> "+3.5", -7 -> "-7"."""
    return f"{'+' if value > 0 else ''}{value:g}"


def _tier(edge: float, high: float, medium: float) -> Confidence:
    if edge >= high:
        return Confidence.HIGH
    if edge >= medium:
        return Confidence.MEDIUM
    return Confidence.LOW


class ValueCalculator:
    """
    Calculate value bets by comparing model predictions to market lines.

    Spread and total edges are measured in points, moneyline edges in
    percentage points of win probability.
    """

    def __init__(self, thresholds: ValueThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    # ==================== ODDS CONVERSION ====================

    @staticmethod
    def odds_to_implied_probability(odds: int) -> float:
        """Convert American odds to implied probability, as a percentage."""
        if odds < 0:
            return -odds / (-odds + 100) * 100
        return 100 / (odds + 100) * 100

    # ==================== MAIN VALUE FINDING ====================

    def find_value_bets(
        self,
        prediction: GamePrediction,
        market: Optional[MarketLine],
        game_id: str,
    ) -> List[ValueBet]:
        """
        Find all value betting opportunities for a game.

        Args:
            prediction: Our model's prediction
            market: Current market line (None if the game has no odds yet)
            game_id: Identifier carried onto each bet

        Returns:
            Value bets, highest edge first

        Raises:
            InvalidMarketLineError: if the market line is malformed
        """
        if market is None:
            return []
        market.validate()

        value_bets: List[ValueBet] = []
        value_bets.extend(self._check_spread_value(prediction, market, game_id))
        value_bets.extend(self._check_total_value(prediction, market, game_id))
        value_bets.extend(self._check_moneyline_value(prediction, market, game_id))

        # sort() is stable, so ties keep spread/total/ML order
        value_bets.sort(key=lambda vb: vb.edge, reverse=True)

        logger.debug(
            f"{prediction.away_team} @ {prediction.home_team}: "
            f"{len(value_bets)} value bet(s) vs {market.bookmaker or 'market'}"
        )
        return value_bets

    def _check_spread_value(
        self,
        prediction: GamePrediction,
        market: MarketLine,
        game_id: str,
    ) -> List[ValueBet]:
        """Spread value when our line and the market's differ enough."""
        t = self.thresholds
        # Positive: market makes home a bigger underdog than we do
        spread_diff = market.spread - prediction.predicted_spread
        if abs(spread_diff) < t.min_spread_edge:
            return []

        edge = abs(spread_diff)
        home_is_favorite = market.spread < 0
        bet_on_home = spread_diff > 0

        team_to_bet = prediction.home_team if bet_on_home else prediction.away_team
        spread_for_bet = market.spread if bet_on_home else -market.spread
        is_underdog = (not home_is_favorite) if bet_on_home else home_is_favorite
        bet_side = BetSide.UNDERDOG if is_underdog else BetSide.FAVORITE

        return [ValueBet(
            game_id=game_id,
            bet_type=BetType.SPREAD,
            recommendation=f"{team_to_bet} {_signed(spread_for_bet)}",
            edge=round_half_up(edge, 1),
            confidence=_tier(edge, t.spread_high, t.spread_medium),
            model_line=prediction.predicted_spread,
            market_line=market.spread,
            explanation=(
                f"Our model: {prediction.home_team} {_signed(prediction.predicted_spread)}, "
                f"Market: {_signed(market.spread)}"
            ),
            bet_side=bet_side,
            team_to_bet=team_to_bet,
            bet_description=f"Bet {team_to_bet} {_signed(spread_for_bet)} ({bet_side.name})",
        )]

    def _check_total_value(
        self,
        prediction: GamePrediction,
        market: MarketLine,
        game_id: str,
    ) -> List[ValueBet]:
        t = self.thresholds
        total_diff = prediction.predicted_total - market.total
        if abs(total_diff) < t.min_total_edge:
            return []

        edge = abs(total_diff)
        bet_over = total_diff > 0
        team_to_bet = "OVER" if bet_over else "UNDER"

        return [ValueBet(
            game_id=game_id,
            bet_type=BetType.TOTAL_OVER if bet_over else BetType.TOTAL_UNDER,
            recommendation=f"{'Over' if bet_over else 'Under'} {market.total:g}",
            edge=round_half_up(edge, 1),
            confidence=_tier(edge, t.total_high, t.total_medium),
            model_line=prediction.predicted_total,
            market_line=market.total,
            explanation=f"Our model: {prediction.predicted_total} total, Market: {market.total:g}",
            bet_side=BetSide.OVER if bet_over else BetSide.UNDER,
            team_to_bet=team_to_bet,
            bet_description=f"Take {team_to_bet} {market.total:g} points",
        )]

    def _check_moneyline_value(
        self,
        prediction: GamePrediction,
        market: MarketLine,
        game_id: str,
    ) -> List[ValueBet]:
        """Moneyline value for either side, skipping heavy favorites."""
        t = self.thresholds
        values = []
        home_is_favorite = market.spread < 0

        sides = (
            (prediction.home_team, prediction.home_win_probability, market.home_moneyline, not home_is_favorite),
            (prediction.away_team, prediction.away_win_probability, market.away_moneyline, home_is_favorite),
        )

        for team, model_prob, odds, is_underdog in sides:
            implied = self.odds_to_implied_probability(odds)
            edge = model_prob - implied
            if edge < t.min_ml_edge or odds < t.max_ml_favorite:
                continue

            bet_side = BetSide.UNDERDOG if is_underdog else BetSide.FAVORITE
            values.append(ValueBet(
                game_id=game_id,
                bet_type=BetType.MONEYLINE,
                recommendation=f"{team} ML ({_signed(odds)})",
                edge=round_half_up(edge),
                confidence=_tier(edge, t.ml_high, t.ml_medium),
                model_line=model_prob,
                market_line=implied,
                explanation=f"Our model: {model_prob:.0f}% win, Market implies: {implied:.0f}%",
                bet_side=bet_side,
                team_to_bet=team,
                bet_description=f"Bet {team} ML ({bet_side.name})",
            ))

        return values

    # ==================== FORMATTING ====================

    def format_value_bet(self, vb: ValueBet) -> str:
        """Format a value bet for display."""
        conf_str = vb.confidence.value.upper()

        if vb.bet_type == BetType.SPREAD:
            return (
                f"📊 SPREAD: {vb.bet_description}\n"
                f"   Model: {_signed(vb.model_line)} | Market: {_signed(vb.market_line)}\n"
                f"   Edge: {vb.edge:.1f} pts | Confidence: {conf_str}"
            )
        if vb.bet_type in (BetType.TOTAL_OVER, BetType.TOTAL_UNDER):
            return (
                f"📈 TOTAL: {vb.bet_description}\n"
                f"   Model Total: {vb.model_line:g} | Line: {vb.market_line:g}\n"
                f"   Edge: {vb.edge:.1f} pts | Confidence: {conf_str}"
            )
        return (
            f"💰 MONEYLINE: {vb.recommendation}\n"
            f"   Model Win%: {vb.model_line:.0f}% | Market: {vb.market_line:.1f}%\n"
            f"   Edge: {vb.edge:.0f}% | Confidence: {conf_str}"
        )


CONFIDENCE_STYLES = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "dim",
}


def confidence_style(confidence: Confidence) -> str:
    """Rich style name for a confidence level."""
    return CONFIDENCE_STYLES.get(confidence, "white")


# ==================== MODULE-LEVEL API ====================

_default_calculator = ValueCalculator()


def odds_to_implied_probability(odds: int) -> float:
    return ValueCalculator.odds_to_implied_probability(odds)


def find_value_bets(
    prediction: GamePrediction,
    market: Optional[MarketLine],
    game_id: str,
) -> List[ValueBet]:
    return _default_calculator.find_value_bets(prediction, market, game_id)
