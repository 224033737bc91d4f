from .cache import TTLCache
from .espn import ESPNClient, ESPNClientError, get_espn_client
from .odds_api import OddsAPIClient, OddsAPIError, Market, OddsFormat, get_odds_client
from .balldontlie import BallDontLieClient, BallDontLieError

__all__ = [
    "TTLCache",
    "ESPNClient",
    "ESPNClientError",
    "get_espn_client",
    "OddsAPIClient",
    "OddsAPIError",
    "Market",
    "OddsFormat",
    "get_odds_client",
    "BallDontLieClient",
    "BallDontLieError",
]
