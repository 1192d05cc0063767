from abc import ABC, abstractmethod
from typing import Optional
from .models import AccountContext, AccountSnapshot, OrderLimits, OrderResult, Severity

class BrokerGateway(ABC):
    """Abstract base class for broker API clients

    Every call takes the account context explicitly; implementations must not
    cache session state between calls. Broker error text must surface verbatim
    in the raised BrokerAPIError.
    """

    @abstractmethod
    async def fetch_snapshot(self, context: AccountContext) -> AccountSnapshot:
        """Get positions, total equity and outstanding orders"""
        pass

    @abstractmethod
    async def place_sell_order(
        self,
        context: AccountContext,
        instrument: str,
        quantity: float
    ) -> OrderResult:
        """Place a market sell for a positive quantity"""
        pass

    @abstractmethod
    async def place_buy_order(
        self,
        context: AccountContext,
        instrument: str,
        value: float
    ) -> OrderResult:
        """Place a market buy for a cash value"""
        pass

    @abstractmethod
    async def get_order_limits(
        self,
        context: AccountContext,
        instrument: str,
        currency: str
    ) -> OrderLimits:
        """Get minimum sell value and maximum sellable quantity"""
        pass

class TickerResolver(ABC):
    """Maps human-readable ticker symbols to broker instrument codes"""

    @abstractmethod
    async def resolve(self, raw_symbol: str) -> Optional[str]:
        """Return the instrument code, or None to drop the symbol from the run"""
        pass

class AccountContextProvider(ABC):
    """Supplies the authenticated account context for a run"""

    @abstractmethod
    async def get_context(self) -> AccountContext:
        """Raise SetupError when no usable context exists"""
        pass

class ProgressSink(ABC):
    """Receives structured progress messages"""

    @abstractmethod
    async def emit(self, message: str, severity: Severity = 'info', is_final: bool = False):
        pass
