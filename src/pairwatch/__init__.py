from pairwatch.models import Candle, CollectorStats, Pair, TokenInfo

__version__ = "1.0.0"
__all__ = ["Candle", "CollectorStats", "Pair", "TokenInfo", "__version__"]
