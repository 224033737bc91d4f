"""
Betting Statistics

Efficiency, pace and form metrics derived from a team's recent results,
ATS / over-under summaries, rest indicators and line movement.

ATS and totals summaries come in two flavours. Real records are built
from historical closing spreads; simulated records are synthesized from
margin of victory against an assumed line when no spread history is
available. The two are separate types so that downstream code can always
tell them apart.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from .sports import Sport, get_profile, round_half_up


class InvalidSnapshotError(ValueError):
    """Raised when team data can't be used for a rating or prediction."""
    pass


# ==================== RECENT RESULTS ====================

@dataclass(frozen=True)
class RecentGameResult:
    """A completed game from one team's point of view."""
    date: datetime
    team_score: float
    opponent_score: float
    is_home: bool
    opponent: str = ""
    opponent_id: str = ""

    @property
    def result(self) -> str:
        """"W" or "L". A tie counts as a loss."""
        return "W" if self.team_score > self.opponent_score else "L"

    @property
    def margin(self) -> float:
        return self.team_score - self.opponent_score

    @property
    def combined_score(self) -> float:
        return self.team_score + self.opponent_score


def is_bad_number(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def validate_scores(games: Sequence[RecentGameResult], team: str = "team") -> None:
    """
    Raises:
        InvalidSnapshotError: on a missing, NaN or negative score
    """
    for game in games:
        for value in (game.team_score, game.opponent_score):
            if is_bad_number(value) or value < 0:
                raise InvalidSnapshotError(f"{team}: invalid score {value!r} in game on {game.date}")


# ==================== INJURIES ====================

class InjuryStatus(Enum):
    OUT = "Out"
    DOUBTFUL = "Doubtful"
    QUESTIONABLE = "Questionable"
    DAY_TO_DAY = "Day-To-Day"
    PROBABLE = "Probable"
    UNKNOWN = "Unknown"

    @classmethod
    def normalize(cls, text: Optional[str]) -> "InjuryStatus":
        """Map a free-text feed status onto the known statuses."""
        s = (text or "").lower()
        if "out" in s:
            return cls.OUT
        if "doubtful" in s:
            return cls.DOUBTFUL
        if "questionable" in s:
            return cls.QUESTIONABLE
        if "probable" in s:
            return cls.PROBABLE
        if "day-to-day" in s or "day to day" in s:
            return cls.DAY_TO_DAY
        return cls.UNKNOWN

    @property
    def is_out_tier(self) -> bool:
        return self in (InjuryStatus.OUT, InjuryStatus.DOUBTFUL)

    @property
    def is_questionable_tier(self) -> bool:
        return self in (InjuryStatus.QUESTIONABLE, InjuryStatus.DAY_TO_DAY)


@dataclass(frozen=True)
class InjuryEntry:
    player_name: str
    position: str
    status: InjuryStatus


# ==================== ATS / TOTALS RECORDS ====================

class RecordKind(Enum):
    REAL = "real"
    SIMULATED = "simulated"


@dataclass(frozen=True)
class SplitRecord:
    wins: int = 0
    losses: int = 0
    pushes: int = 0


@dataclass(frozen=True)
class ATSRecord:
    """Against-the-spread summary. Use RealATSRecord or SimulatedATSRecord."""
    wins: int
    losses: int
    pushes: int
    percentage: int
    home: SplitRecord = field(default_factory=SplitRecord)
    away: SplitRecord = field(default_factory=SplitRecord)
    recent: Tuple[str, ...] = ()  # "W" / "L" / "P", most recent first

    kind: ClassVar[RecordKind]

    @property
    def is_real(self) -> bool:
        return self.kind is RecordKind.REAL

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.pushes


@dataclass(frozen=True)
class RealATSRecord(ATSRecord):
    kind: ClassVar[RecordKind] = RecordKind.REAL


@dataclass(frozen=True)
class SimulatedATSRecord(ATSRecord):
    kind: ClassVar[RecordKind] = RecordKind.SIMULATED


@dataclass(frozen=True)
class TotalsRecord:
    """Over/under summary. Use RealTotalsRecord or SimulatedTotalsRecord."""
    overs: int
    unders: int
    pushes: int
    over_percentage: int
    average_total_points: float
    recent: Tuple[str, ...] = ()  # "O" / "U" / "P", most recent first

    kind: ClassVar[RecordKind]

    @property
    def is_real(self) -> bool:
        return self.kind is RecordKind.REAL


@dataclass(frozen=True)
class RealTotalsRecord(TotalsRecord):
    kind: ClassVar[RecordKind] = RecordKind.REAL


@dataclass(frozen=True)
class SimulatedTotalsRecord(TotalsRecord):
    kind: ClassVar[RecordKind] = RecordKind.SIMULATED


ATSSummary = Union[RealATSRecord, SimulatedATSRecord]
TotalsSummary = Union[RealTotalsRecord, SimulatedTotalsRecord]

# Only this many results are kept in the "recent" sequences
RECENT_SEQUENCE_LENGTH = 10

# Assumed line for simulated ATS (home teams are typically ~3 point favorites)
SIMULATED_HOME_SPREAD = -3.0


def classify_cover(cover_margin: float) -> str:
    if cover_margin > 0:
        return "W"
    if cover_margin < 0:
        return "L"
    return "P"


def classify_total(game_total: float, line: float) -> str:
    if game_total > line:
        return "O"
    if game_total < line:
        return "U"
    return "P"


def build_ats_record(
    outcomes: Iterable[Tuple[bool, float]],
    record_cls: Type[ATSRecord],
) -> Optional[ATSRecord]:
    """
    Aggregate per-game cover margins into an ATS record.

    Args:
        outcomes: (is_home, cover_margin) pairs, most recent first.
            cover_margin = actual margin + the spread the team carried.
        record_cls: RealATSRecord or SimulatedATSRecord

    Returns:
        The record, or None if there were no outcomes
    """
    totals = {"W": 0, "L": 0, "P": 0}
    home = {"W": 0, "L": 0, "P": 0}
    away = {"W": 0, "L": 0, "P": 0}
    recent: List[str] = []

    for is_home, cover_margin in outcomes:
        result = classify_cover(cover_margin)
        totals[result] += 1
        (home if is_home else away)[result] += 1
        if len(recent) < RECENT_SEQUENCE_LENGTH:
            recent.append(result)

    if not recent:
        return None

    decided = totals["W"] + totals["L"]
    percentage = int(round_half_up(totals["W"] / decided * 100)) if decided > 0 else 0

    return record_cls(
        wins=totals["W"],
        losses=totals["L"],
        pushes=totals["P"],
        percentage=percentage,
        home=SplitRecord(home["W"], home["L"], home["P"]),
        away=SplitRecord(away["W"], away["L"], away["P"]),
        recent=tuple(recent),
    )


def build_totals_record(
    outcomes: Iterable[Tuple[float, float]],
    record_cls: Type[TotalsRecord],
) -> Optional[TotalsRecord]:
    """
    Aggregate (game_total, line) pairs into an over/under record.

    Returns None if there were no outcomes.
    """
    counts = {"O": 0, "U": 0, "P": 0}
    points = 0.0
    games = 0
    recent: List[str] = []

    for game_total, line in outcomes:
        result = classify_total(game_total, line)
        counts[result] += 1
        points += game_total
        games += 1
        if len(recent) < RECENT_SEQUENCE_LENGTH:
            recent.append(result)

    if games == 0:
        return None

    decided = counts["O"] + counts["U"]
    over_pct = int(round_half_up(counts["O"] / decided * 100)) if decided > 0 else 0

    return record_cls(
        overs=counts["O"],
        unders=counts["U"],
        pushes=counts["P"],
        over_percentage=over_pct,
        average_total_points=round_half_up(points / games),
        recent=tuple(recent),
    )


def _window(games: Sequence[RecentGameResult], lookback: Optional[int]) -> Sequence[RecentGameResult]:
    return games[:lookback] if lookback is not None else games


def calculate_simulated_ats(
    games: Sequence[RecentGameResult],
    lookback: Optional[int] = None,
) -> Optional[SimulatedATSRecord]:
    """
    Simulated ATS record for when no historical spreads are available.

    Each game is scored against an assumed line of -3 at home / +3 away.
    Low fidelity: callers must surface it as simulated.
    """
    outcomes = (
        (g.is_home, g.margin + (SIMULATED_HOME_SPREAD if g.is_home else -SIMULATED_HOME_SPREAD))
        for g in _window(games, lookback)
    )
    return build_ats_record(outcomes, SimulatedATSRecord)


def calculate_simulated_totals(
    games: Sequence[RecentGameResult],
    sport: Union[Sport, str],
    lookback: Optional[int] = None,
) -> Optional[SimulatedTotalsRecord]:
    """Simulated over/under record against a flat league-average total."""
    line = get_profile(sport).ou_baseline_total
    outcomes = ((g.combined_score, line) for g in _window(games, lookback))
    return build_totals_record(outcomes, SimulatedTotalsRecord)


def format_ats_record(ats: ATSRecord) -> str:
    push = f"-{ats.pushes}" if ats.pushes > 0 else ""
    suffix = "" if ats.is_real else " (sim)"
    return f"{ats.wins}-{ats.losses}{push} ATS{suffix}"


def format_totals_record(ou: TotalsRecord) -> str:
    suffix = "" if ou.is_real else " (sim)"
    return f"{ou.overs}-{ou.unders} O/U{suffix}"


# ==================== EFFICIENCY / FORM / PACE ====================

@dataclass(frozen=True)
class EfficiencyRatings:
    off_rating: float
    def_rating: float
    net_rating: float


NEUTRAL_EFFICIENCY = EfficiencyRatings(off_rating=100, def_rating=100, net_rating=0)


def compute_efficiency(
    games: Sequence[RecentGameResult],
    sport: Union[Sport, str],
) -> EfficiencyRatings:
    """
    Offensive/defensive ratings centered at 100.

    Average points scored (allowed) divided by the league per-game baseline
    (NBA 110, NFL 22). A lower defensive rating is better. Empty input
    returns the neutral 100/100/0.

    Raises:
        InvalidSnapshotError: on a negative or NaN score
    """
    if not games:
        return NEUTRAL_EFFICIENCY
    validate_scores(games)

    baseline = get_profile(sport).efficiency_baseline
    avg_for = sum(g.team_score for g in games) / len(games)
    avg_against = sum(g.opponent_score for g in games) / len(games)

    off_rating = round_half_up(avg_for / baseline * 100)
    def_rating = round_half_up(avg_against / baseline * 100)
    return EfficiencyRatings(
        off_rating=off_rating,
        def_rating=def_rating,
        net_rating=off_rating - def_rating,
    )


@dataclass(frozen=True)
class Streak:
    result: str  # "W" or "L"
    count: int

    def __str__(self) -> str:
        return f"{self.result}{self.count}" if self.count else "-"


def get_streak(games: Sequence[RecentGameResult]) -> Streak:
    """Run of identical results starting from the most recent game."""
    if not games:
        return Streak("W", 0)

    first = games[0].result
    count = 0
    for game in games:
        if game.result != first:
            break
        count += 1
    return Streak(first, count)


@dataclass(frozen=True)
class Form:
    record: str
    results: Tuple[str, ...]

    @property
    def win_pct(self) -> Optional[float]:
        if not self.results:
            return None
        return self.results.count("W") / len(self.results)


def calculate_form(games: Sequence[RecentGameResult], n: int = 5) -> Form:
    window = games[:n]
    results = tuple(g.result for g in window)
    return Form(record=f"{results.count('W')}-{results.count('L')}", results=results)


def calculate_pace_rating(games: Sequence[RecentGameResult], sport: Union[Sport, str]) -> float:
    """Average combined score normalised to 100 (NBA) or 22 (NFL)."""
    profile = get_profile(sport)
    if not games:
        return profile.pace_scale

    avg_total = sum(g.combined_score for g in games) / len(games)
    return round_half_up(avg_total / profile.pace_baseline_total * profile.pace_scale)


@dataclass(frozen=True)
class TeamTrends:
    """Recent form at a glance: last-five record, streak, efficiency and pace."""
    form: Form
    streak: Streak
    efficiency: EfficiencyRatings
    pace: float


def calculate_trends(games: Sequence[RecentGameResult], sport: Union[Sport, str]) -> TeamTrends:
    return TeamTrends(
        form=calculate_form(games),
        streak=get_streak(games),
        efficiency=compute_efficiency(games, sport),
        pace=calculate_pace_rating(games, sport),
    )


# ==================== REST ====================

@dataclass(frozen=True)
class RestSnapshot:
    days_of_rest: int
    is_back_to_back: bool = False
    games_last_7_days: int = 0
    games_last_14_days: int = 0

    @classmethod
    def for_days(cls, days_of_rest: int, **kwargs: Any) -> "RestSnapshot":
        """Build a snapshot with the back-to-back flag derived from the days."""
        return cls(days_of_rest=days_of_rest, is_back_to_back=days_of_rest <= 1, **kwargs)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def calculate_rest_info(
    games: Sequence[RecentGameResult],
    next_game_date: datetime,
    now: Optional[datetime] = None,
) -> Optional[RestSnapshot]:
    """
    Rest before the next game and recent workload.

    Days of rest is the whole number of days between the last completed
    game and the next one; one day or less counts as a back-to-back.
    """
    if not games:
        return None

    now = _as_aware(now or datetime.now(timezone.utc))
    dates = sorted((_as_aware(g.date) for g in games), reverse=True)

    days_of_rest = (_as_aware(next_game_date) - dates[0]) // timedelta(days=1)
    seven_days_ago = now - timedelta(days=7)
    fourteen_days_ago = now - timedelta(days=14)

    return RestSnapshot(
        days_of_rest=days_of_rest,
        is_back_to_back=days_of_rest <= 1,
        games_last_7_days=sum(1 for d in dates if d >= seven_days_ago),
        games_last_14_days=sum(1 for d in dates if d >= fourteen_days_ago),
    )


def calculate_rest_advantage(team: RestSnapshot, opponent: RestSnapshot) -> int:
    """Positive when `team` has more rest."""
    return team.days_of_rest - opponent.days_of_rest


# ==================== LINE MOVEMENT ====================

@dataclass(frozen=True)
class LineMovement:
    opening_spread: float
    current_spread: float
    spread_movement: float
    movement_direction: str  # "sharps", "public" or "neutral"
    opening_total: Optional[float] = None
    current_total: Optional[float] = None
    total_movement: Optional[float] = None
    opening_moneyline: Optional[int] = None
    current_moneyline: Optional[int] = None
    moneyline_movement: Optional[int] = None


def detect_line_movement(event: Dict[str, Any], side: str = "home") -> Optional[LineMovement]:
    """
    Approximate line movement from the spread between bookmakers.

    The first book listed stands in for the opening line and the last one
    for the current line. Needs at least two books quoting a spread.

    Args:
        event: Odds event in The Odds API shape (home_team, away_team, bookmakers)
        side: "home" or "away"
    """
    bookmakers = event.get("bookmakers", [])
    if len(bookmakers) < 2:
        return None

    team = event.get("home_team") if side == "home" else event.get("away_team")
    spreads: List[float] = []
    totals: List[float] = []
    moneylines: List[int] = []

    for book in bookmakers:
        markets = {m.get("key"): m for m in book.get("markets", [])}

        for outcome in markets.get("spreads", {}).get("outcomes", []):
            if outcome.get("name") == team and outcome.get("point") is not None:
                spreads.append(outcome["point"])

        for outcome in markets.get("totals", {}).get("outcomes", []):
            if outcome.get("name") == "Over" and outcome.get("point") is not None:
                totals.append(outcome["point"])

        for outcome in markets.get("h2h", {}).get("outcomes", []):
            if outcome.get("name") == team:
                moneylines.append(outcome["price"])

    if len(spreads) < 2:
        return None

    opening_spread, current_spread = spreads[0], spreads[-1]
    spread_movement = opening_spread - current_spread

    opening_total = totals[0] if totals else None
    current_total = totals[-1] if totals else None
    total_movement = current_total - opening_total if totals else None

    opening_ml = moneylines[0] if moneylines else None
    current_ml = moneylines[-1] if moneylines else None
    ml_movement = current_ml - opening_ml if moneylines else None

    direction = "neutral"
    if abs(spread_movement) >= 1:
        direction = "sharps" if spread_movement > 0 else "public"

    return LineMovement(
        opening_spread=opening_spread,
        current_spread=current_spread,
        spread_movement=spread_movement,
        movement_direction=direction,
        opening_total=opening_total,
        current_total=current_total,
        total_movement=total_movement,
        opening_moneyline=opening_ml,
        current_moneyline=current_ml,
        moneyline_movement=ml_movement,
    )


def format_spread(spread: float) -> str:
    if spread == 0:
        return "PK"
    return f"+{spread:g}" if spread > 0 else f"{spread:g}"
