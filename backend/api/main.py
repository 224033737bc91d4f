"""
FastAPI Backend

REST API for NBA/NFL game predictions and value bets.
"""

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from services.alerts import AlertPreferences, filter_alerts_by_sport, get_unread_count
from services.betting_stats import (
    InjuryEntry,
    InjuryStatus,
    RealTotalsRecord,
    RecentGameResult,
    RestSnapshot,
    SimulatedTotalsRecord,
    TeamTrends,
)
from services.game_service import GameAnalysis, GameService
from services.predictor import (
    GamePrediction,
    HeadToHead,
    InvalidSnapshotError,
    TeamSnapshot,
    predict_game,
)
from services.sports import Sport, to_sport
from services.value_calculator import (
    BetType,
    InvalidMarketLineError,
    MarketLine,
    ValueBet,
    find_value_bets,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# CORS configuration - set allowed origins from environment or use defaults
DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", DEFAULT_ORIGINS).split(",")


# ==================== REQUEST MODELS ====================

class RecentGameRequest(BaseModel):
    date: datetime
    team_score: float = Field(..., ge=0)
    opponent_score: float = Field(..., ge=0)
    is_home: bool
    opponent: str = ""
    opponent_id: str = ""


class InjuryRequest(BaseModel):
    player_name: str
    position: str = ""
    status: str


class RestRequest(BaseModel):
    days_of_rest: int = Field(..., ge=0)
    is_back_to_back: Optional[bool] = None
    games_last_7_days: int = 0
    games_last_14_days: int = 0


class TotalsRecordRequest(BaseModel):
    overs: int = 0
    unders: int = 0
    pushes: int = 0
    over_percentage: int = 0
    average_total_points: float
    is_real: bool = False


class TeamSnapshotRequest(BaseModel):
    id: str
    name: str
    points_for_per_game: float
    points_against_per_game: float
    point_differential: float
    recent_games: List[RecentGameRequest] = []
    injuries: List[InjuryRequest] = []
    totals_record: Optional[TotalsRecordRequest] = None
    rest: Optional[RestRequest] = None


class HeadToHeadRequest(BaseModel):
    away_wins: int = Field(0, ge=0)
    home_wins: int = Field(0, ge=0)
    average_margin: float = 0.0


class MarketLineRequest(BaseModel):
    spread: float
    total: float
    home_moneyline: int
    away_moneyline: int
    bookmaker: str = ""


class PredictRequest(BaseModel):
    sport: str
    home: TeamSnapshotRequest
    away: TeamSnapshotRequest
    h2h: Optional[HeadToHeadRequest] = None
    market: Optional[MarketLineRequest] = None
    game_id: str = "custom"


# ==================== RESPONSE MODELS ====================

class PredictionFactorResponse(BaseModel):
    name: str
    impact: float
    description: str
    favored_team: str


class PredictionResponse(BaseModel):
    home_team: str
    away_team: str
    predicted_winner: str
    win_probability: int
    home_win_probability: int
    away_win_probability: int
    confidence: str
    predicted_home_score: int
    predicted_away_score: int
    predicted_spread: float
    predicted_total: int
    home_power: float
    away_power: float
    power_differential: float
    total_basis: str
    factors: List[PredictionFactorResponse]


class ValueBetResponse(BaseModel):
    model_config = {"protected_namespaces": ()}

    game_id: str
    bet_type: str
    recommendation: str
    edge: float
    confidence: str
    model_line: float
    market_line: float
    explanation: str
    bet_side: str
    team_to_bet: str
    bet_description: str


class MarketLineResponse(BaseModel):
    spread: float
    total: float
    home_moneyline: int
    away_moneyline: int
    bookmaker: str


class TeamTrendsResponse(BaseModel):
    last_five: str
    streak: str
    off_rating: float
    def_rating: float
    net_rating: float
    pace: float


class LineMovementResponse(BaseModel):
    opening_spread: float
    current_spread: float
    spread_movement: float
    movement_direction: str
    opening_total: Optional[float] = None
    current_total: Optional[float] = None
    total_movement: Optional[float] = None


class GameAnalysisResponse(BaseModel):
    game_id: str
    sport: str
    home_team: str
    away_team: str
    game_time: datetime
    prediction: PredictionResponse
    market: Optional[MarketLineResponse] = None
    spread_diff: Optional[float] = None
    total_diff: Optional[float] = None
    value_bets: List[ValueBetResponse]
    home_trends: Optional[TeamTrendsResponse] = None
    away_trends: Optional[TeamTrendsResponse] = None
    rest_advantage: Optional[int] = None
    line_movement: Optional[LineMovementResponse] = None
    data_sources: dict = {}


class PredictResponse(BaseModel):
    prediction: PredictionResponse
    value_bets: List[ValueBetResponse]


class AlertResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    game_id: str
    priority: str
    created_at: datetime
    read: bool
    sport: Optional[str] = None
    edge: Optional[float] = None


class AlertsResponse(BaseModel):
    alerts: List[AlertResponse]
    unread_count: int


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str


# ==================== APP SETUP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"[Startup] API {API_VERSION}, allowed origins: {', '.join(ALLOWED_ORIGINS)}")
    yield


app = FastAPI(
    title="Sports Prediction API",
    description="NBA/NFL game predictions and value bet detection",
    version=API_VERSION,
    lifespan=lifespan
)

# CORS middleware - restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Service instances
game_service = GameService()


# ==================== HELPER FUNCTIONS ====================

def _parse_sport(sport: str) -> Sport:
    try:
        return to_sport(sport)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _prediction_to_response(p: GamePrediction) -> PredictionResponse:
    return PredictionResponse(
        home_team=p.home_team,
        away_team=p.away_team,
        predicted_winner=p.predicted_winner,
        win_probability=p.win_probability,
        home_win_probability=p.home_win_probability,
        away_win_probability=p.away_win_probability,
        confidence=p.confidence.value,
        predicted_home_score=p.predicted_home_score,
        predicted_away_score=p.predicted_away_score,
        predicted_spread=p.predicted_spread,
        predicted_total=p.predicted_total,
        home_power=p.home_power,
        away_power=p.away_power,
        power_differential=p.power_differential,
        total_basis=p.total_basis.value,
        factors=[
            PredictionFactorResponse(
                name=f.name,
                impact=f.impact,
                description=f.description,
                favored_team=f.favored_team
            )
            for f in p.factors
        ]
    )


def _value_bet_to_response(vb: ValueBet) -> ValueBetResponse:
    return ValueBetResponse(
        game_id=vb.game_id,
        bet_type=vb.bet_type.value,
        recommendation=vb.recommendation,
        edge=vb.edge,
        confidence=vb.confidence.value,
        model_line=vb.model_line,
        market_line=vb.market_line,
        explanation=vb.explanation,
        bet_side=vb.bet_side.value,
        team_to_bet=vb.team_to_bet,
        bet_description=vb.bet_description
    )


def _trends_to_response(team: TeamSnapshot, trends: TeamTrends) -> Optional[TeamTrendsResponse]:
    if not team.recent_games:
        return None
    return TeamTrendsResponse(
        last_five=trends.form.record,
        streak=str(trends.streak),
        off_rating=trends.efficiency.off_rating,
        def_rating=trends.efficiency.def_rating,
        net_rating=trends.efficiency.net_rating,
        pace=trends.pace
    )


def _analysis_to_response(analysis: GameAnalysis) -> GameAnalysisResponse:
    market = None
    if analysis.market is not None:
        m = analysis.market
        market = MarketLineResponse(
            spread=m.spread,
            total=m.total,
            home_moneyline=m.home_moneyline,
            away_moneyline=m.away_moneyline,
            bookmaker=m.bookmaker
        )

    line_movement = None
    if analysis.line_movement is not None:
        lm = analysis.line_movement
        line_movement = LineMovementResponse(
            opening_spread=lm.opening_spread,
            current_spread=lm.current_spread,
            spread_movement=lm.spread_movement,
            movement_direction=lm.movement_direction,
            opening_total=lm.opening_total,
            current_total=lm.current_total,
            total_movement=lm.total_movement
        )

    return GameAnalysisResponse(
        game_id=analysis.game_id,
        sport=analysis.sport.value,
        home_team=analysis.home_team,
        away_team=analysis.away_team,
        game_time=analysis.game_time,
        prediction=_prediction_to_response(analysis.prediction),
        market=market,
        spread_diff=analysis.spread_diff,
        total_diff=analysis.total_diff,
        value_bets=[_value_bet_to_response(vb) for vb in analysis.value_bets],
        home_trends=_trends_to_response(analysis.home, analysis.home_trends),
        away_trends=_trends_to_response(analysis.away, analysis.away_trends),
        rest_advantage=analysis.rest_advantage,
        line_movement=line_movement,
        data_sources=analysis.data_sources()
    )


def _snapshot_from_request(team: TeamSnapshotRequest, is_home: bool) -> TeamSnapshot:
    totals = None
    if team.totals_record is not None:
        t = team.totals_record
        record_cls = RealTotalsRecord if t.is_real else SimulatedTotalsRecord
        totals = record_cls(
            overs=t.overs,
            unders=t.unders,
            pushes=t.pushes,
            over_percentage=t.over_percentage,
            average_total_points=t.average_total_points
        )

    rest = None
    if team.rest is not None:
        r = team.rest
        rest = RestSnapshot(
            days_of_rest=r.days_of_rest,
            is_back_to_back=r.is_back_to_back if r.is_back_to_back is not None else r.days_of_rest <= 1,
            games_last_7_days=r.games_last_7_days,
            games_last_14_days=r.games_last_14_days
        )

    return TeamSnapshot(
        id=team.id,
        name=team.name,
        points_for_per_game=team.points_for_per_game,
        points_against_per_game=team.points_against_per_game,
        point_differential=team.point_differential,
        recent_games=tuple(
            RecentGameResult(
                date=g.date,
                team_score=g.team_score,
                opponent_score=g.opponent_score,
                is_home=g.is_home,
                opponent=g.opponent,
                opponent_id=g.opponent_id
            )
            for g in team.recent_games
        ),
        injuries=tuple(
            InjuryEntry(
                player_name=i.player_name,
                position=i.position,
                status=InjuryStatus.normalize(i.status)
            )
            for i in team.injuries
        ),
        totals_record=totals,
        rest=rest,
        is_home=is_home
    )


# ==================== ENDPOINTS ====================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=API_VERSION
    )


@app.get("/api/{sport}/games/today", response_model=List[GameAnalysisResponse])
async def get_todays_games(sport: str):
    """Get analysis for all of today's games."""
    sport = _parse_sport(sport)
    try:
        analyses = await game_service.get_slate_analysis(sport)
        return [_analysis_to_response(a) for a in analyses]
    except Exception as e:
        logger.exception(f"Slate analysis failed for {sport.value}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/{sport}/value-bets", response_model=List[ValueBetResponse])
async def get_value_bets(
    sport: str,
    min_edge: float = Query(0.0, ge=0.0, description="Minimum edge (points, or % for moneylines)"),
    bet_type: Optional[str] = Query(None, description="Filter by bet type: spread, total, moneyline")
):
    """Get all value bets for today's games, highest edge first."""
    sport = _parse_sport(sport)
    try:
        value_games = await game_service.get_value_bets(sport, min_edge=min_edge)
    except Exception as e:
        logger.exception(f"Value bet lookup failed for {sport.value}")
        raise HTTPException(status_code=500, detail=str(e))

    bets = [vb for _, game_bets in value_games for vb in game_bets]
    if bet_type == "total":
        bets = [vb for vb in bets if vb.bet_type in (BetType.TOTAL_OVER, BetType.TOTAL_UNDER)]
    elif bet_type:
        bets = [vb for vb in bets if vb.bet_type.value == bet_type]

    bets.sort(key=lambda vb: vb.edge, reverse=True)
    return [_value_bet_to_response(vb) for vb in bets]


@app.get("/api/{sport}/matchup", response_model=GameAnalysisResponse)
async def analyze_matchup(
    sport: str,
    home: str = Query(..., description="Home team name"),
    away: str = Query(..., description="Away team name")
):
    """Analyze a specific matchup on today's scoreboard."""
    sport = _parse_sport(sport)
    try:
        analysis = await game_service.get_game_analysis(sport, home, away)
    except Exception as e:
        logger.exception(f"Matchup analysis failed for {away} @ {home}")
        raise HTTPException(status_code=500, detail=str(e))

    if not analysis:
        raise HTTPException(status_code=404, detail="Game not found")
    return _analysis_to_response(analysis)


@app.get("/api/{sport}/spreads")
async def get_spread_discrepancies(
    sport: str,
    min_diff: float = Query(2.0, description="Minimum spread difference")
):
    """Get games where the model spread differs significantly from the market."""
    sport = _parse_sport(sport)
    try:
        analyses = await game_service.get_slate_analysis(sport)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    spread_games = [
        {
            "game_id": a.game_id,
            "home_team": a.home_team,
            "away_team": a.away_team,
            "game_time": a.game_time.isoformat(),
            "model_spread": a.prediction.predicted_spread,
            "market_spread": a.market.spread,
            "difference": a.spread_diff,
            "lean": a.away_team if a.spread_diff > 0 else a.home_team
        }
        for a in analyses
        if a.market is not None and abs(a.spread_diff) >= min_diff
    ]
    spread_games.sort(key=lambda x: abs(x["difference"]), reverse=True)
    return spread_games


@app.get("/api/{sport}/totals")
async def get_total_discrepancies(
    sport: str,
    min_diff: float = Query(3.0, description="Minimum total difference")
):
    """Get games where the model total differs significantly from the market."""
    sport = _parse_sport(sport)
    try:
        analyses = await game_service.get_slate_analysis(sport)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    total_games = [
        {
            "game_id": a.game_id,
            "home_team": a.home_team,
            "away_team": a.away_team,
            "game_time": a.game_time.isoformat(),
            "model_total": a.prediction.predicted_total,
            "market_total": a.market.total,
            "difference": a.total_diff,
            "lean": "over" if a.total_diff > 0 else "under"
        }
        for a in analyses
        if a.market is not None and abs(a.total_diff) >= min_diff
    ]
    total_games.sort(key=lambda x: abs(x["difference"]), reverse=True)
    return total_games


@app.post("/api/predict", response_model=PredictResponse)
async def predict(request: PredictRequest):
    """Predict a game from caller-supplied team snapshots, optionally pricing a market line."""
    sport = _parse_sport(request.sport)

    h2h = None
    if request.h2h is not None:
        h2h = HeadToHead(
            away_wins=request.h2h.away_wins,
            home_wins=request.h2h.home_wins,
            average_margin=request.h2h.average_margin
        )

    market = None
    if request.market is not None:
        market = MarketLine(**request.market.model_dump())

    try:
        home = _snapshot_from_request(request.home, is_home=True)
        away = _snapshot_from_request(request.away, is_home=False)
        prediction = predict_game(home, away, sport, h2h)
        value_bets = find_value_bets(prediction, market, request.game_id)
    except (InvalidSnapshotError, InvalidMarketLineError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PredictResponse(
        prediction=_prediction_to_response(prediction),
        value_bets=[_value_bet_to_response(vb) for vb in value_bets]
    )


@app.get("/api/alerts", response_model=AlertsResponse)
async def get_alerts(
    sport: Optional[str] = Query(None, description="nba or nfl (default: both)"),
    min_edge: float = Query(3.0, ge=0.0, description="Minimum value bet edge"),
    line_movement: bool = Query(False, description="Include line movement alerts")
):
    """Alerts for value bets, high-confidence picks, line moves and injuries on today's slates."""
    sport_filter = _parse_sport(sport) if sport else None
    sports = (sport_filter,) if sport_filter else (Sport.NBA, Sport.NFL)
    preferences = AlertPreferences(
        min_edge=min_edge,
        sports=sports,
        enable_line_movement_alerts=line_movement
    )

    try:
        alerts = await game_service.get_alerts(preferences)
    except Exception as e:
        logger.exception("Alert generation failed")
        raise HTTPException(status_code=500, detail=str(e))

    alerts = filter_alerts_by_sport(alerts, sport_filter)
    return AlertsResponse(
        alerts=[
            AlertResponse(
                id=a.id,
                type=a.type.value,
                title=a.title,
                message=a.message,
                game_id=a.game_id,
                priority=a.priority.value,
                created_at=a.created_at,
                read=a.read,
                sport=a.sport.value if a.sport else None,
                edge=a.edge
            )
            for a in alerts
        ],
        unread_count=get_unread_count(alerts)
    )


@app.get("/api/odds/usage")
async def get_odds_api_usage():
    """Get The Odds API usage statistics from the most recent requests."""
    return game_service.get_odds_usage()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
