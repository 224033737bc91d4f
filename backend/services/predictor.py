"""
Game Predictor

Power ratings and game outcome predictions for NBA and NFL matchups.

A team's power rating (100 = league average) combines season point
differential, efficiency over recent games, recent form, streaks,
injuries and rest. Two ratings plus home advantage, schedule and
head-to-head context give a predicted margin, which is turned into a
spread, a score line and win probabilities.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .betting_stats import (
    ATSSummary,
    InjuryEntry,
    InvalidSnapshotError,
    RecentGameResult,
    RestSnapshot,
    TotalsSummary,
    compute_efficiency,
    get_streak,
    is_bad_number,
    validate_scores,
)
from .sports import Sport, get_profile, round_half_up, to_sport

logger = logging.getLogger(__name__)


class Confidence(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TotalBasis(Enum):
    """Where the predicted total came from."""
    SEASON_AVERAGES = "season_averages"
    REAL_TOTALS = "real_totals"
    SIMULATED_TOTALS = "simulated_totals"


# ==================== WEIGHTS ====================

@dataclass(frozen=True)
class ModelWeights:
    """All tunable weights for power ratings and predictions."""
    # Power rating
    efficiency_weight: float = 0.3          # per point of net rating
    efficiency_min_games: int = 5
    recent_form_window: int = 5
    recent_form_scale: float = 10.0
    recent_form_weight: float = 0.6
    streak_min_games: int = 3
    streak_cap: int = 5
    streak_bonus: float = 0.3               # per game in streak

    # Situational
    home_court_advantage: float = 3.0       # applied to both sports
    back_to_back_penalty: float = 2.5
    rest_advantage_per_day: float = 0.5
    neutral_rest_days: int = 2
    rest_diff_threshold: int = 2
    h2h_weight: float = 0.3                 # per game of H2H edge
    h2h_min_diff: int = 2

    # Injuries
    injury_starter: float = 2.0
    injury_rotation: float = 0.5
    injury_starter_slots: int = 2
    questionable_factor: float = 0.5

    # Confidence
    high_margin: float = 8.0
    high_power_diff: float = 8.0
    medium_margin: float = 4.0
    min_recent_games: int = 5
    max_out_injuries: int = 3


DEFAULT_WEIGHTS = ModelWeights()


# ==================== INPUTS ====================

@dataclass(frozen=True)
class TeamSnapshot:
    """Everything known about a team going into a game."""
    id: str
    name: str
    points_for_per_game: float
    points_against_per_game: float
    point_differential: float
    recent_games: Sequence[RecentGameResult] = ()
    injuries: Sequence[InjuryEntry] = ()
    ats_record: Optional[ATSSummary] = None
    totals_record: Optional[TotalsSummary] = None
    rest: Optional[RestSnapshot] = None
    is_home: bool = False

    @property
    def out_count(self) -> int:
        """Players listed Out or Doubtful."""
        return sum(1 for i in self.injuries if i.status.is_out_tier)

    def validate(self) -> None:
        if not self.id or not str(self.id).strip():
            raise InvalidSnapshotError("Team id is required")
        if not self.name or not self.name.strip():
            raise InvalidSnapshotError(f"Team name is required (id={self.id})")

        for label, value in (
            ("points_for_per_game", self.points_for_per_game),
            ("points_against_per_game", self.points_against_per_game),
        ):
            if is_bad_number(value) or value < 0:
                raise InvalidSnapshotError(f"{self.name}: {label} must be a non-negative number, got {value!r}")

        if is_bad_number(self.point_differential) or math.isinf(self.point_differential):
            raise InvalidSnapshotError(f"{self.name}: point_differential must be a finite number")

        validate_scores(self.recent_games, self.name)

        if self.rest is not None and self.rest.days_of_rest < 0:
            raise InvalidSnapshotError(f"{self.name}: days_of_rest can't be negative")


@dataclass(frozen=True)
class HeadToHead:
    """Recent meetings between the two teams in a matchup."""
    away_wins: int = 0
    home_wins: int = 0
    average_margin: float = 0.0  # from the away team's side


# ==================== OUTPUTS ====================

@dataclass(frozen=True)
class PredictionFactor:
    """One contribution to the predicted margin, for display."""
    name: str
    impact: float           # points added to the home margin
    description: str
    favored_team: str       # "home", "away" or "neutral"


@dataclass(frozen=True)
class GamePrediction:
    home_team: str
    away_team: str
    predicted_winner: str
    win_probability: int            # predicted winner's probability, 0-100
    home_win_probability: int
    away_win_probability: int
    confidence: Confidence
    predicted_home_score: int
    predicted_away_score: int
    predicted_spread: float         # negative = home favored
    predicted_total: int
    factors: List[PredictionFactor] = field(default_factory=list)
    home_power: float = 100.0
    away_power: float = 100.0
    power_differential: float = 0.0
    predicted_margin: float = 0.0   # home margin before rounding
    total_basis: TotalBasis = TotalBasis.SEASON_AVERAGES

    @property
    def is_pick_em(self) -> bool:
        return self.predicted_spread == 0


# ==================== MATH ====================

def normal_cdf(z: float) -> float:
    """Standard normal CDF (Abramowitz & Stegun 7.1.26, error < 1.5e-7)."""
    a1 = 0.254829592
    a2 = -0.284496736
    a3 = 1.421413741
    a4 = -1.453152027
    a5 = 1.061405429
    p = 0.3275911

    sign = -1 if z < 0 else 1
    x = abs(z) / math.sqrt(2)

    t = 1.0 / (1.0 + p * x)
    y = 1.0 - (((((a5 * t + a4) * t) + a3) * t + a2) * t + a1) * t * math.exp(-x * x)
    return 0.5 * (1.0 + sign * y)


def _favored(impact: float) -> str:
    if impact > 0:
        return "home"
    if impact < 0:
        return "away"
    return "neutral"


# ==================== PREDICTOR ====================

class GamePredictor:
    """
    Heuristic power-rating model for NBA/NFL games.

    Stateless apart from its (frozen) weights, so one instance can be
    shared across requests.
    """

    def __init__(self, weights: ModelWeights = DEFAULT_WEIGHTS):
        self.weights = weights

    # ==================== POWER RATING ====================

    def calculate_injury_impact(self, injuries: Sequence[InjuryEntry]) -> float:
        """
        Rating points lost to injuries.

        The first two Out/Doubtful players are treated as starters, any
        beyond that as rotation players. Questionable/Day-To-Day players
        count for half a rotation player. Player quality is not known.
        """
        w = self.weights
        out = sum(1 for i in injuries if i.status.is_out_tier)
        questionable = sum(1 for i in injuries if i.status.is_questionable_tier)

        starters = min(out, w.injury_starter_slots)
        rotation = max(0, out - w.injury_starter_slots)

        return (
            starters * w.injury_starter
            + rotation * w.injury_rotation
            + questionable * w.injury_rotation * w.questionable_factor
        )

    def compute_power_rating(self, team: TeamSnapshot, sport: Union[Sport, str]) -> float:
        """
        Power rating for a team, 100 = league average.

        Args:
            team: Team snapshot
            sport: "nba" or "nfl"

        Returns:
            Rating rounded to one decimal

        Raises:
            InvalidSnapshotError: if the snapshot is malformed
        """
        team.validate()
        w = self.weights
        profile = get_profile(sport)
        games = team.recent_games

        rating = 100 + team.point_differential * profile.point_diff_multiplier

        if len(games) >= w.efficiency_min_games:
            rating += compute_efficiency(games, profile.sport).net_rating * w.efficiency_weight

        last_n = games[:w.recent_form_window]
        if last_n:
            win_pct = sum(1 for g in last_n if g.result == "W") / len(last_n)
            rating += (win_pct - 0.5) * w.recent_form_scale * w.recent_form_weight

        streak = get_streak(games)
        if streak.count >= w.streak_min_games:
            adjust = min(streak.count, w.streak_cap) * w.streak_bonus
            rating += adjust if streak.result == "W" else -adjust

        rating -= self.calculate_injury_impact(team.injuries)

        if team.rest is not None:
            if team.rest.is_back_to_back:
                rating -= w.back_to_back_penalty
            elif team.rest.days_of_rest > w.neutral_rest_days:
                rating += (team.rest.days_of_rest - w.neutral_rest_days) * w.rest_advantage_per_day

        return round_half_up(rating, 1)

    # ==================== PREDICTION ====================

    def _rest_days(self, team: TeamSnapshot) -> int:
        # Missing rest info (or a reported 0) counts as normal rest
        if team.rest is None:
            return self.weights.neutral_rest_days
        return team.rest.days_of_rest or self.weights.neutral_rest_days

    def _predict_total(self, home: TeamSnapshot, away: TeamSnapshot, sport: Sport) -> Tuple[float, TotalBasis]:
        profile = get_profile(sport)

        combined_for = (home.points_for_per_game + away.points_for_per_game) or profile.fallback_total
        combined_against = (home.points_against_per_game + away.points_against_per_game) or profile.fallback_total
        total = (combined_for + combined_against) / 2
        basis = TotalBasis.SEASON_AVERAGES

        if home.totals_record is not None and away.totals_record is not None:
            home_avg = home.totals_record.average_total_points or total
            away_avg = away.totals_record.average_total_points or total
            total = (home_avg + away_avg) / 2
            both_real = home.totals_record.is_real and away.totals_record.is_real
            basis = TotalBasis.REAL_TOTALS if both_real else TotalBasis.SIMULATED_TOTALS

        low, high = profile.total_bounds
        return max(low, min(high, total)), basis

    def _confidence(
        self,
        margin: float,
        power_diff: float,
        home: TeamSnapshot,
        away: TeamSnapshot,
    ) -> Confidence:
        w = self.weights
        confidence = Confidence.LOW
        if abs(margin) >= w.high_margin and abs(power_diff) >= w.high_power_diff:
            confidence = Confidence.HIGH
        elif abs(margin) >= w.medium_margin:
            confidence = Confidence.MEDIUM

        # Small samples are never trusted
        if len(home.recent_games) < w.min_recent_games or len(away.recent_games) < w.min_recent_games:
            confidence = Confidence.LOW

        # Heavy injury lists cap at medium; anything below high drops to low
        if home.out_count >= w.max_out_injuries or away.out_count >= w.max_out_injuries:
            confidence = Confidence.MEDIUM if confidence is Confidence.HIGH else Confidence.LOW

        return confidence

    def predict_game(
        self,
        home: TeamSnapshot,
        away: TeamSnapshot,
        sport: Union[Sport, str],
        h2h: Optional[HeadToHead] = None,
    ) -> GamePrediction:
        """
        Predict a game.

        Args:
            home: Home team snapshot
            away: Away team snapshot
            sport: "nba" or "nfl"
            h2h: Optional head-to-head history

        Returns:
            GamePrediction

        Raises:
            InvalidSnapshotError: if either snapshot is malformed
        """
        sport = to_sport(sport)
        home.validate()
        away.validate()

        w = self.weights
        profile = get_profile(sport)
        factors: List[PredictionFactor] = []

        home_power = self.compute_power_rating(home, sport)
        away_power = self.compute_power_rating(away, sport)
        power_diff = home_power - away_power

        # Rating points -> points of margin
        margin = power_diff / 2
        factors.append(PredictionFactor(
            name="Power Rating",
            impact=power_diff / 2,
            description=f"Home: {home_power:.1f} vs Away: {away_power:.1f}",
            favored_team=_favored(power_diff),
        ))

        margin += w.home_court_advantage
        factors.append(PredictionFactor(
            name="Home Court",
            impact=w.home_court_advantage,
            description=f"+{w.home_court_advantage:g} points for home team",
            favored_team="home",
        ))

        home_b2b = home.rest is not None and home.rest.is_back_to_back
        away_b2b = away.rest is not None and away.rest.is_back_to_back

        if home_b2b:
            margin -= w.back_to_back_penalty
            factors.append(PredictionFactor(
                name="Home B2B",
                impact=-w.back_to_back_penalty,
                description="Home team on back-to-back",
                favored_team="away",
            ))

        if away_b2b:
            margin += w.back_to_back_penalty
            factors.append(PredictionFactor(
                name="Away B2B",
                impact=w.back_to_back_penalty,
                description="Away team on back-to-back",
                favored_team="home",
            ))

        home_rest = self._rest_days(home)
        away_rest = self._rest_days(away)
        rest_diff = home_rest - away_rest
        if abs(rest_diff) >= w.rest_diff_threshold and not home_b2b and not away_b2b:
            impact = rest_diff * w.rest_advantage_per_day
            margin += impact
            factors.append(PredictionFactor(
                name="Rest Advantage",
                impact=impact,
                description=f"Home: {home_rest}d vs Away: {away_rest}d rest",
                favored_team=_favored(rest_diff),
            ))

        if h2h is not None and (h2h.home_wins > 0 or h2h.away_wins > 0):
            h2h_diff = h2h.home_wins - h2h.away_wins
            if abs(h2h_diff) >= w.h2h_min_diff:
                impact = h2h_diff * w.h2h_weight
                margin += impact
                factors.append(PredictionFactor(
                    name="Head-to-Head",
                    impact=impact,
                    description=f"H2H: {h2h.home_wins}-{h2h.away_wins} (home-away)",
                    favored_team=_favored(h2h_diff),
                ))

        # Already counted in the power ratings; listed for display only
        home_out = home.out_count
        away_out = away.out_count
        if home_out > 0 or away_out > 0:
            factors.append(PredictionFactor(
                name="Injuries",
                impact=0.0,
                description=f"Home: {home_out} out, Away: {away_out} out",
                favored_team=_favored(away_out - home_out),
            ))

        total, total_basis = self._predict_total(home, away, sport)

        home_score = int(round_half_up(total / 2 + margin / 2))
        away_score = int(round_half_up(total / 2 - margin / 2))

        home_win_prob = int(round_half_up(normal_cdf(margin / profile.margin_std_dev) * 100))
        away_win_prob = 100 - home_win_prob
        home_is_winner = margin >= 0

        spread = -round_half_up(margin * 2) / 2
        if spread == 0:
            spread = 0.0  # no negative zero

        prediction = GamePrediction(
            home_team=home.name,
            away_team=away.name,
            predicted_winner=home.name if home_is_winner else away.name,
            win_probability=home_win_prob if home_is_winner else away_win_prob,
            home_win_probability=home_win_prob,
            away_win_probability=away_win_prob,
            confidence=self._confidence(margin, power_diff, home, away),
            predicted_home_score=home_score,
            predicted_away_score=away_score,
            predicted_spread=spread,
            predicted_total=int(round_half_up(total)),
            factors=factors,
            home_power=home_power,
            away_power=away_power,
            power_differential=power_diff,
            predicted_margin=margin,
            total_basis=total_basis,
        )

        logger.debug(
            f"{away.name} @ {home.name} ({sport.value}): power {home_power:.1f}/{away_power:.1f}, "
            f"margin {margin:+.2f}, spread {spread:+.1f}, total {prediction.predicted_total}, "
            f"home win {home_win_prob}%, confidence {prediction.confidence.value}"
        )
        return prediction


# ==================== MODULE-LEVEL API ====================

_default_predictor = GamePredictor()


def compute_power_rating(team: TeamSnapshot, sport: Union[Sport, str]) -> float:
    return _default_predictor.compute_power_rating(team, sport)


def predict_game(
    home: TeamSnapshot,
    away: TeamSnapshot,
    sport: Union[Sport, str],
    h2h: Optional[HeadToHead] = None,
) -> GamePrediction:
    return _default_predictor.predict_game(home, away, sport, h2h)
