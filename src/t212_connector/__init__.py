from .client import T212Client, parse_account_summary, parse_order_limits, extract_error_message
from .resolver import AlgoliaTickerResolver
from .account import EnvAccountContextProvider

__version__ = "1.0.0"

__all__ = [
    "T212Client",
    "parse_account_summary",
    "parse_order_limits",
    "extract_error_message",
    "AlgoliaTickerResolver",
    "EnvAccountContextProvider",
    "__version__",
]
