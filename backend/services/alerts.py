"""
Alerts

Turns analysed games into user-facing alerts for value bets, high-confidence
picks, line moves and significant injury news, filtered by the user's
preferences.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .betting_stats import InjuryEntry, LineMovement, format_spread
from .predictor import Confidence, GamePrediction
from .sports import Sport
from .value_calculator import BetSide, ValueBet

logger = logging.getLogger(__name__)


class AlertType(Enum):
    VALUE_BET = "value_bet"
    HIGH_CONFIDENCE = "high_confidence"
    LINE_MOVEMENT = "line_movement"
    INJURY = "injury"


class AlertPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {AlertPriority.HIGH: 0, AlertPriority.MEDIUM: 1, AlertPriority.LOW: 2}
CONFIDENCE_LEVELS = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}

SIDE_ICONS = {
    BetSide.UNDERDOG: "🐕",
    BetSide.FAVORITE: "👑",
    BetSide.OVER: "📈",
    BetSide.UNDER: "📉",
}

TYPE_ICONS = {
    AlertType.VALUE_BET: "💰",
    AlertType.HIGH_CONFIDENCE: "✅",
    AlertType.LINE_MOVEMENT: "📊",
    AlertType.INJURY: "🏥",
}

PRIORITY_ICONS = {
    AlertPriority.HIGH: "🔴",
    AlertPriority.MEDIUM: "🟡",
    AlertPriority.LOW: "⚪",
}


@dataclass(frozen=True)
class AlertPreferences:
    user_id: str = "default"
    enable_value_bet_alerts: bool = True
    enable_high_confidence_alerts: bool = True
    enable_line_movement_alerts: bool = False
    enable_injury_alerts: bool = True
    min_edge: float = 3.0
    min_confidence: Confidence = Confidence.MEDIUM
    sports: Tuple[Sport, ...] = (Sport.NBA, Sport.NFL)


@dataclass(frozen=True)
class Alert:
    id: str
    user_id: str
    type: AlertType
    title: str
    message: str
    game_id: str
    priority: AlertPriority
    created_at: datetime
    read: bool = False
    bet_side: Optional[BetSide] = None
    edge: Optional[float] = None
    confidence: Optional[Confidence] = None
    sport: Optional[Sport] = None


@dataclass(frozen=True)
class GameWithPrediction:
    """An analysed game, as input to alert generation."""
    game_id: str
    home_team: str
    away_team: str
    game_time: datetime
    sport: Sport
    prediction: GamePrediction
    value_bets: Sequence[ValueBet] = ()
    home_injuries: Optional[Sequence[InjuryEntry]] = None
    away_injuries: Optional[Sequence[InjuryEntry]] = None
    line_movement: Optional[LineMovement] = None


def meets_confidence_threshold(actual: Confidence, threshold: Confidence) -> bool:
    return CONFIDENCE_LEVELS[actual] >= CONFIDENCE_LEVELS[threshold]


def _stamp(now: datetime) -> int:
    return int(now.timestamp() * 1000)


# ==================== GENERATORS ====================

def generate_value_bet_alerts(
    game: GameWithPrediction,
    preferences: AlertPreferences,
    now: datetime,
) -> List[Alert]:
    alerts = []
    for bet in game.value_bets:
        if bet.edge < preferences.min_edge:
            continue
        if not meets_confidence_threshold(bet.confidence, preferences.min_confidence):
            continue

        if bet.edge >= 5:
            priority = AlertPriority.HIGH
        elif bet.edge >= 4:
            priority = AlertPriority.MEDIUM
        else:
            priority = AlertPriority.LOW

        alerts.append(Alert(
            id=f"vb-{game.game_id}-{bet.bet_type.value}-{_stamp(now)}",
            user_id=preferences.user_id,
            type=AlertType.VALUE_BET,
            title=f"{SIDE_ICONS[bet.bet_side]} {bet.bet_side.name} Value: {bet.team_to_bet}",
            message=bet.bet_description,
            game_id=game.game_id,
            priority=priority,
            created_at=now,
            bet_side=bet.bet_side,
            edge=bet.edge,
            confidence=bet.confidence,
            sport=game.sport,
        ))
    return alerts


def generate_high_confidence_alerts(
    game: GameWithPrediction,
    preferences: AlertPreferences,
    now: datetime,
) -> List[Alert]:
    prediction = game.prediction
    if prediction.confidence is not Confidence.HIGH or prediction.win_probability < 65:
        return []

    return [Alert(
        id=f"hc-{game.game_id}-{_stamp(now)}",
        user_id=preferences.user_id,
        type=AlertType.HIGH_CONFIDENCE,
        title=f"High Confidence Pick: {prediction.predicted_winner}",
        message=f"{prediction.win_probability}% win probability | {game.away_team} @ {game.home_team}",
        game_id=game.game_id,
        priority=AlertPriority.HIGH if prediction.win_probability >= 75 else AlertPriority.MEDIUM,
        created_at=now,
        confidence=Confidence.HIGH,
        sport=game.sport,
    )]


def generate_injury_alerts(
    game: GameWithPrediction,
    preferences: AlertPreferences,
    now: datetime,
) -> List[Alert]:
    """One alert per side with two or more players Out/Doubtful."""
    alerts = []
    sides = (
        ("home", game.home_team, game.home_injuries),
        ("away", game.away_team, game.away_injuries),
    )
    for side, team, injuries in sides:
        if not injuries:
            continue
        significant = [i for i in injuries if i.status.is_out_tier]
        if len(significant) < 2:
            continue

        players = ", ".join(i.player_name for i in significant[:3])
        alerts.append(Alert(
            id=f"inj-{game.game_id}-{side}-{_stamp(now)}",
            user_id=preferences.user_id,
            type=AlertType.INJURY,
            title=f"Injury Alert: {team}",
            message=f"{len(significant)} players OUT: {players}",
            game_id=game.game_id,
            priority=AlertPriority.HIGH if len(significant) >= 3 else AlertPriority.MEDIUM,
            created_at=now,
            sport=game.sport,
        ))
    return alerts


def generate_line_movement_alerts(
    game: GameWithPrediction,
    preferences: AlertPreferences,
    now: datetime,
) -> List[Alert]:
    """Alert when the home spread has moved a point or more across books."""
    movement = game.line_movement
    if movement is None or movement.movement_direction == "neutral":
        return []

    size = abs(movement.spread_movement)
    money = "Sharp" if movement.movement_direction == "sharps" else "Public"
    return [Alert(
        id=f"lm-{game.game_id}-{_stamp(now)}",
        user_id=preferences.user_id,
        type=AlertType.LINE_MOVEMENT,
        title=(
            f"Line Move: {game.home_team} "
            f"{format_spread(movement.opening_spread)} → {format_spread(movement.current_spread)}"
        ),
        message=f"{money} money, {size:g} pts | {game.away_team} @ {game.home_team}",
        game_id=game.game_id,
        priority=AlertPriority.HIGH if size >= 2 else AlertPriority.MEDIUM,
        created_at=now,
        sport=game.sport,
    )]


def sort_alerts(alerts: List[Alert]) -> List[Alert]:
    """Highest priority first, newest first within a priority."""
    by_newest = sorted(alerts, key=lambda a: a.created_at, reverse=True)
    return sorted(by_newest, key=lambda a: PRIORITY_ORDER[a.priority])


def generate_alerts(
    games: Sequence[GameWithPrediction],
    preferences: AlertPreferences = AlertPreferences(),
    now: Optional[datetime] = None,
) -> List[Alert]:
    """
    Generate all alerts for a set of analysed games.

    Args:
        games: Analysed games
        preferences: Which alerts the user wants
        now: Timestamp for the alerts (defaults to the current time)

    Returns:
        Alerts sorted by priority, then newest first
    """
    now = now or datetime.now(timezone.utc)
    alerts: List[Alert] = []

    for game in games:
        if game.sport not in preferences.sports:
            continue

        if preferences.enable_value_bet_alerts:
            alerts.extend(generate_value_bet_alerts(game, preferences, now))

        if preferences.enable_high_confidence_alerts:
            alerts.extend(generate_high_confidence_alerts(game, preferences, now))

        if preferences.enable_line_movement_alerts:
            alerts.extend(generate_line_movement_alerts(game, preferences, now))

        if preferences.enable_injury_alerts:
            alerts.extend(generate_injury_alerts(game, preferences, now))

    logger.debug(f"Generated {len(alerts)} alerts from {len(games)} games")
    return sort_alerts(alerts)


# ==================== HELPERS ====================

def time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((now - when).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{days}d ago"


def format_alert_message(alert: Alert, now: Optional[datetime] = None) -> str:
    icon = PRIORITY_ICONS[alert.priority]
    return f"{icon} {alert.title}\n{alert.message}\n{time_ago(alert.created_at, now)}"


def get_unread_count(alerts: Sequence[Alert]) -> int:
    return sum(1 for a in alerts if not a.read)


def group_alerts_by_type(alerts: Sequence[Alert]) -> Dict[AlertType, List[Alert]]:
    grouped: Dict[AlertType, List[Alert]] = {}
    for alert in alerts:
        grouped.setdefault(alert.type, []).append(alert)
    return grouped


def filter_alerts_by_sport(alerts: Sequence[Alert], sport: Optional[Sport]) -> List[Alert]:
    """Alerts for one sport, or all of them when `sport` is None."""
    if sport is None:
        return list(alerts)
    return [a for a in alerts if a.sport == sport]
