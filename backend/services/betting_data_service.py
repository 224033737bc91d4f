"""
Betting Data Service

Per-team ATS, over/under and rest data with source tracking.

ATS and totals records go through a fallback chain: real closing-line
history (NBA, via BallDontLie), then a simulated record clearly tagged as
such, then "unavailable". Rest is always computed from the schedule.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

from clients.balldontlie import BallDontLieClient, BallDontLieError
from clients.cache import TTLCache
from .betting_stats import (
    ATSSummary,
    RecentGameResult,
    RestSnapshot,
    TotalsSummary,
    calculate_rest_info,
    calculate_simulated_ats,
    calculate_simulated_totals,
)
from .sports import Sport, to_sport

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL = 300  # seconds
BATCH_SIZE = 4
SIMULATED_LOOKBACK = 10


class DataSource(Enum):
    BALLDONTLIE = "balldontlie"
    SIMULATED = "simulated"
    SCHEDULE = "schedule"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class BettingDataResult(Generic[T]):
    """A value together with where it came from."""
    data: Optional[T]
    source: DataSource
    is_real: bool
    timestamp: float = field(default_factory=time.time)
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, error: Optional[str] = None) -> "BettingDataResult[T]":
        return cls(data=None, source=DataSource.UNAVAILABLE, is_real=False, error=error)


@dataclass(frozen=True)
class TeamBettingData:
    ats: BettingDataResult[ATSSummary]
    totals: BettingDataResult[TotalsSummary]
    rest: BettingDataResult[RestSnapshot]

    @property
    def has_real_data(self) -> bool:
        return self.ats.is_real or self.totals.is_real


def get_data_source_summary(data: TeamBettingData) -> Dict[str, Any]:
    return {
        "ats_source": data.ats.source.value,
        "ou_source": data.totals.source.value,
        "rest_source": data.rest.source.value,
        "has_real_data": data.has_real_data,
    }


def cache_ttl_from_env() -> float:
    return float(os.getenv("BETTING_DATA_CACHE_TTL", DEFAULT_CACHE_TTL))


class BettingDataService:
    """
    Builds TeamBettingData for teams on a slate.

    Args:
        balldontlie: Client for real NBA closing lines (None to skip)
        cache: Cache for finished TeamBettingData
        allow_simulated: Fall back to simulated ATS/totals records when
            real history is unavailable
    """

    def __init__(
        self,
        balldontlie: Optional[BallDontLieClient] = None,
        cache: Optional[TTLCache] = None,
        allow_simulated: bool = True,
    ):
        self.balldontlie = balldontlie
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=cache_ttl_from_env())
        self.allow_simulated = allow_simulated

    async def _real_records(
        self,
        sport: Sport,
        espn_team_id: str,
    ) -> Tuple[BettingDataResult, BettingDataResult]:
        if sport is not Sport.NBA or self.balldontlie is None:
            return BettingDataResult.unavailable(), BettingDataResult.unavailable()

        try:
            ats, totals = await asyncio.gather(
                self.balldontlie.calculate_real_ats(espn_team_id),
                self.balldontlie.calculate_real_totals(espn_team_id),
            )
        except BallDontLieError as e:
            logger.warning(f"BallDontLie failed for team {espn_team_id}: {e}")
            return BettingDataResult.unavailable(str(e)), BettingDataResult.unavailable(str(e))

        ats_result = (
            BettingDataResult(data=ats, source=DataSource.BALLDONTLIE, is_real=True)
            if ats is not None and ats.wins + ats.losses > 0
            else BettingDataResult.unavailable()
        )
        totals_result = (
            BettingDataResult(data=totals, source=DataSource.BALLDONTLIE, is_real=True)
            if totals is not None and totals.overs + totals.unders > 0
            else BettingDataResult.unavailable()
        )
        logger.debug(
            f"BallDontLie team {espn_team_id}: ats={ats_result.source.value}, "
            f"totals={totals_result.source.value}"
        )
        return ats_result, totals_result

    def _simulated_records(
        self,
        sport: Sport,
        recent_games: Sequence[RecentGameResult],
    ) -> Tuple[BettingDataResult, BettingDataResult]:
        ats = calculate_simulated_ats(recent_games, lookback=SIMULATED_LOOKBACK)
        totals = calculate_simulated_totals(recent_games, sport, lookback=SIMULATED_LOOKBACK)
        return (
            BettingDataResult(data=ats, source=DataSource.SIMULATED, is_real=False)
            if ats is not None else BettingDataResult.unavailable(),
            BettingDataResult(data=totals, source=DataSource.SIMULATED, is_real=False)
            if totals is not None else BettingDataResult.unavailable(),
        )

    async def get_team_betting_data(
        self,
        sport: Union[Sport, str],
        espn_team_id: str,
        recent_games: Sequence[RecentGameResult],
        next_game_date: datetime,
    ) -> TeamBettingData:
        """
        Betting data for one team.

        Args:
            sport: "nba" or "nfl"
            espn_team_id: ESPN team id
            recent_games: Completed games, most recent first
            next_game_date: Start time of the game being analysed
        """
        sport = to_sport(sport)
        cache_key = ("betting-data", sport.value, str(espn_team_id), next_game_date.date().isoformat())
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return cached

        ats, totals = await self._real_records(sport, espn_team_id)

        if self.allow_simulated and (ats.data is None or totals.data is None):
            sim_ats, sim_totals = self._simulated_records(sport, recent_games)
            if ats.data is None:
                ats = sim_ats
            if totals.data is None:
                totals = sim_totals

        rest = BettingDataResult.unavailable()
        rest_info = calculate_rest_info(recent_games, next_game_date)
        if rest_info is not None:
            rest = BettingDataResult(data=rest_info, source=DataSource.SCHEDULE, is_real=True)

        result = TeamBettingData(ats=ats, totals=totals, rest=rest)
        self.cache.set(cache_key, result)
        return result

    async def batch_get_betting_data(
        self,
        sport: Union[Sport, str],
        teams: List[Tuple[str, Sequence[RecentGameResult], datetime]],
    ) -> Dict[str, TeamBettingData]:
        """
        Betting data for many teams, a few at a time.

        Args:
            teams: (espn_team_id, recent_games, next_game_date) tuples
        """
        results: Dict[str, TeamBettingData] = {}
        for start in range(0, len(teams), BATCH_SIZE):
            batch = teams[start:start + BATCH_SIZE]
            data = await asyncio.gather(*(
                self.get_team_betting_data(sport, team_id, games, next_game)
                for team_id, games, next_game in batch
            ))
            for (team_id, _, _), team_data in zip(batch, data):
                results[team_id] = team_data
        return results

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Betting data cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()


def create_betting_data_service(allow_simulated: bool = True) -> BettingDataService:
    """Service wired to BallDontLie when BALLDONTLIE_API_KEY is set."""
    cache = TTLCache(ttl_seconds=cache_ttl_from_env())
    try:
        balldontlie = BallDontLieClient(cache=cache)
    except BallDontLieError as e:
        logger.warning(f"Real ATS data disabled: {e}")
        balldontlie = None
    return BettingDataService(balldontlie=balldontlie, cache=cache, allow_simulated=allow_simulated)
