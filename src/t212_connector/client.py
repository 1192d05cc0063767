"""Trading 212 web API client for rebalancing operations"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional
import aiohttp

try:
    import broker_gateway
    from broker_gateway import (
        AccountContext,
        AccountSnapshot,
        BrokerAPIError,
        BrokerConnectionError,
        BrokerGateway,
        OrderLimits,
        OrderRejectedError,
        OrderResult,
        OutstandingQuantityOrder,
        OutstandingValueOrder,
        Position,
    )
    from rebalancer_config import AppConfig, get_config
except ImportError as e:
    raise ImportError(
        f"Failed to import required packages: {e}. "
        "Ensure broker-gateway and rebalancer-config packages are installed."
    )

SUMMARY_PATH = "/rest/trading/invest/v2/accounts/summary"
MIN_MAX_PATH = "/rest/v1/equity/value-order/min-max"
QUANTITY_ORDER_PATH = "/rest/public/v2/equity/order"
VALUE_ORDER_PATH = "/rest/v1/equity/value-order"


def extract_error_message(data: Any, status: int) -> str:
    """Broker error text, verbatim, with the same precedence the web app uses"""
    if isinstance(data, dict):
        message = data.get('message') or data.get('developerMessage')
        if message:
            return str(message)
    return f"HTTP Error {status}"


def parse_account_summary(account_id: str, payload: Any) -> AccountSnapshot:
    """Build a snapshot from the accounts summary response

    Raises:
        BrokerConnectionError: if the payload is missing required sections
    """
    try:
        open_items = payload['open']['items']
        total_equity = float(payload['cash']['total'])

        positions = [
            Position(
                instrument=item['code'],
                quantity=float(item['quantity']),
                market_value=float(item['value']),
                current_price=item.get('currentPrice')
            )
            for item in open_items
        ]

        value_orders = [
            OutstandingValueOrder(instrument=item['code'], value=float(item['value']))
            for item in (payload.get('valueOrders') or {}).get('items') or []
        ]
        quantity_orders = [
            OutstandingQuantityOrder(instrument=item['code'], quantity=float(item['quantity']))
            for item in (payload.get('orders') or {}).get('items') or []
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise BrokerConnectionError(f"Malformed account summary response: {e!r}") from e

    return AccountSnapshot(
        account_id=account_id,
        total_equity=total_equity,
        positions=positions,
        outstanding_value_orders=value_orders,
        outstanding_quantity_orders=quantity_orders
    )


def parse_order_limits(instrument: str, payload: Any) -> OrderLimits:
    """Build order limits from the value-order min-max response"""
    if not isinstance(payload, dict):
        raise BrokerConnectionError(f"Malformed min-max response for {instrument}: {payload!r}")

    try:
        return OrderLimits(
            instrument=instrument,
            min_sell_value=float(payload.get('minSell') or 0.0),
            max_sell_quantity=payload.get('maxSellQuantity'),
            min_buy_value=payload.get('minBuy'),
            max_buy_value=payload.get('maxBuy')
        )
    except (TypeError, ValueError) as e:
        raise BrokerConnectionError(f"Malformed min-max response for {instrument}: {e!r}") from e


class T212Client(BrokerGateway):
    """Trading 212 client; all account state comes from the context passed to each call"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None

        self.logger.info(
            f"Initializing T212Client with broker-gateway v{broker_gateway.__version__}"
        )

    async def connect(self) -> bool:
        """Open the HTTP session"""
        if self.is_connected():
            return True

        timeout = aiohttp.ClientTimeout(total=self.config.broker.request_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)
        self.logger.debug("Opened broker HTTP session")
        return True

    async def disconnect(self):
        """Close the HTTP session"""
        try:
            if self._session and not self._session.closed:
                await self._session.close()
                self.logger.debug("Closed broker HTTP session")
        except Exception as e:
            self.logger.error(f"Error disconnecting: {e}")
        finally:
            self._session = None

    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    async def __aenter__(self) -> "T212Client":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    def base_url(self, context: AccountContext) -> str:
        mode = 'live' if context.trading_mode == 'LIVE' else 'demo'
        return self.config.broker.base_url_template.format(mode=mode)

    def build_headers(self, context: AccountContext) -> Dict[str, str]:
        broker = self.config.broker
        return {
            'Accept': 'application/json',
            'Cookie': context.session_token,
            'X-Trader-Client': (
                f"application={broker.client_application},version={broker.client_version},"
                f"dUUID={context.device_id},accountId={context.account_id}"
            ),
        }

    async def fetch_snapshot(self, context: AccountContext) -> AccountSnapshot:
        """Get positions, total equity and outstanding orders"""
        payload = await self._request(context, 'POST', SUMMARY_PATH, body=[])
        snapshot = parse_account_summary(context.account_id, payload)
        self.logger.info(
            f"Found {len(snapshot.positions)} positions for account {context.account_id} "
            f"(equity {snapshot.total_equity:,.2f})"
        )
        return snapshot

    async def get_order_limits(self, context: AccountContext, instrument: str, currency: str) -> OrderLimits:
        """Get minimum sell value and maximum sellable quantity"""
        payload = await self._request(
            context, 'GET', MIN_MAX_PATH,
            params={'instrumentCode': instrument, 'currencyCode': currency}
        )
        limits = parse_order_limits(instrument, payload)
        self.logger.debug(
            f"Limits for {instrument}: min sell {limits.min_sell_value}, "
            f"max sell quantity {limits.max_sell_quantity}"
        )
        return limits

    async def place_sell_order(self, context: AccountContext, instrument: str, quantity: float) -> OrderResult:
        """Place a market sell; the API expects a negative quantity"""
        body = {
            'instrumentCode': instrument,
            'orderType': 'MARKET',
            'quantity': -abs(quantity),
            'timeValidity': self.config.broker.time_validity,
        }
        data = await self._request(context, 'POST', QUANTITY_ORDER_PATH, body=body, error_cls=OrderRejectedError)
        self.logger.info(f"Placed order: SELL {quantity} {instrument}")
        return self._order_result(data, instrument, 'SELL', quantity=quantity)

    async def place_buy_order(self, context: AccountContext, instrument: str, value: float) -> OrderResult:
        """Place a market buy by cash value"""
        body = {
            'currency': self.config.trading.currency_code,
            'instrumentCode': instrument,
            'value': value,
            'orderType': 'MARKET',
            'timeValidity': self.config.broker.time_validity,
        }
        data = await self._request(context, 'POST', VALUE_ORDER_PATH, body=body, error_cls=OrderRejectedError)
        self.logger.info(f"Placed order: BUY {value:.2f} {self.config.trading.currency_code} of {instrument}")
        return self._order_result(data, instrument, 'BUY', value=value)

    def _order_result(self, data: Any, instrument: str, side: str, **amounts) -> OrderResult:
        data = data if isinstance(data, dict) else {}
        order_id = data.get('id') or data.get('orderId')
        return OrderResult(
            instrument=instrument,
            side=side,
            order_id=str(order_id) if order_id is not None else None,
            status=data.get('status'),
            **amounts
        )

    async def _request(
        self,
        context: AccountContext,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, str]] = None,
        error_cls: type = BrokerAPIError
    ) -> Any:
        """Send one authenticated request and decode the JSON response

        Raises:
            BrokerConnectionError: transport failure or unreadable success response
            BrokerAPIError (or error_cls): the broker returned an error status
        """
        if not context.session_token:
            raise BrokerAPIError("No Trading 212 session cookies found. Please log in.")

        if not self.is_connected():
            await self.connect()

        url = f"{self.base_url(context)}{path}"
        self.logger.debug(f"{method} {url}")

        try:
            async with self._session.request(
                method,
                url,
                headers=self.build_headers(context),
                json=body,
                params=params
            ) as response:
                text = await response.text()
                status = response.status
        except aiohttp.ClientError as e:
            raise BrokerConnectionError(f"{method} {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise BrokerConnectionError(f"{method} {path} timed out") from e

        try:
            data = json.loads(text) if text else None
        except json.JSONDecodeError as e:
            if status >= 400:
                raise error_cls(text.strip() or f"HTTP Error {status}", status=status)
            raise BrokerConnectionError(f"Invalid JSON from {method} {path}: {e}") from e

        if status >= 400:
            message = extract_error_message(data, status)
            self.logger.debug(f"{method} {path} returned {status}: {message}")
            raise error_cls(message, status=status)

        return data
