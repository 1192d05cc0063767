from typing import Optional


class BrokerConnectionError(Exception):
    """Raised when the broker cannot be reached or returns an unreadable response"""
    pass

class BrokerAPIError(Exception):
    """Raised when broker API returns an error payload

    The broker's message is kept verbatim so retry matchers can inspect it.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

class OrderRejectedError(BrokerAPIError):
    """Raised when the broker declines an order"""
    pass

class SetupError(Exception):
    """Raised when a run cannot start (no account context, credentials or instruments)"""
    pass

class TickerResolutionError(Exception):
    """Raised when a ticker cannot be mapped to a broker instrument code"""
    pass

class SizingSkip(Exception):
    """Raised by the order sizer when a candidate must not be submitted"""

    def __init__(self, instrument: str, reason: str):
        super().__init__(f"{instrument}: {reason}")
        self.instrument = instrument
        self.reason = reason
