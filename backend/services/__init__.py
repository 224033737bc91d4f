from .sports import Sport, SportProfile, get_profile
from .betting_stats import (
    RecentGameResult,
    InjuryEntry,
    InjuryStatus,
    RestSnapshot,
    EfficiencyRatings,
    compute_efficiency,
)
from .predictor import (
    GamePredictor,
    GamePrediction,
    TeamSnapshot,
    HeadToHead,
    ModelWeights,
    Confidence,
    InvalidSnapshotError,
    compute_power_rating,
    predict_game,
)
from .value_calculator import (
    ValueCalculator,
    MarketLine,
    ValueBet,
    BetType,
    BetSide,
    InvalidMarketLineError,
    find_value_bets,
    odds_to_implied_probability,
)

__all__ = [
    "Sport",
    "SportProfile",
    "get_profile",
    "RecentGameResult",
    "InjuryEntry",
    "InjuryStatus",
    "RestSnapshot",
    "EfficiencyRatings",
    "compute_efficiency",
    "GamePredictor",
    "GamePrediction",
    "TeamSnapshot",
    "HeadToHead",
    "ModelWeights",
    "Confidence",
    "InvalidSnapshotError",
    "compute_power_rating",
    "predict_game",
    "ValueCalculator",
    "MarketLine",
    "ValueBet",
    "BetType",
    "BetSide",
    "InvalidMarketLineError",
    "find_value_bets",
    "odds_to_implied_probability",
]
