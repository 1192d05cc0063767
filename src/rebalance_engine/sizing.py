"""Order sizing: value differences to sell quantities and buy values"""

from decimal import Decimal, ROUND_DOWN
from typing import Optional
import logging
from broker_gateway import BuyOrder, OrderLimits, Position, SellOrder, SizingSkip
from rebalancer_config import AppConfig, get_config
from .models import InstrumentDiff


def truncate(value: float, decimals: int) -> float:
    """Cut (never round) a value to the given number of decimals"""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_DOWN))


class OrderSizer:
    """Convert classified diffs into concrete orders"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or get_config()

    def is_liquidation(self, diff: InstrumentDiff, position: Position) -> bool:
        """Full liquidation when the instrument has no positive target weight or a
        partial sell would leave dust behind"""
        if diff.target_weight <= 0:
            return True
        remaining_value = position.market_value - abs(diff.difference)
        return remaining_value < self.config.trading.dust_threshold

    def size_sell(self, diff: InstrumentDiff, position: Position,
                  limits: Optional[OrderLimits] = None) -> SellOrder:
        """
        Size a sell candidate.

        Raises:
            SizingSkip: below the broker minimum, no usable value, or a
                non-positive quantity
        """
        trading = self.config.trading
        value_to_sell = abs(diff.difference)

        if self.is_liquidation(diff, position):
            quantity = position.quantity
            if (trading.prefer_broker_max_sell_quantity and limits
                    and limits.max_sell_quantity is not None and limits.max_sell_quantity > 0):
                if limits.max_sell_quantity != position.quantity:
                    self.logger.info(
                        f"Using broker max sell quantity {limits.max_sell_quantity} for {diff.instrument} "
                        f"(position shows {position.quantity})"
                    )
                quantity = limits.max_sell_quantity

            if quantity <= 0:
                raise SizingSkip(diff.instrument, f"liquidation quantity {quantity} is zero or negative")

            return SellOrder(
                instrument=diff.instrument,
                quantity=quantity,
                original_value_difference=diff.difference,
                is_liquidation=True
            )

        if limits and value_to_sell < limits.min_sell_value:
            raise SizingSkip(
                diff.instrument,
                f"intended sell value {value_to_sell:.2f} is below minimum of {limits.min_sell_value:.2f}"
            )

        if position.market_value <= 0 or position.quantity <= 0:
            raise SizingSkip(
                diff.instrument,
                f"no usable position value ({position.market_value:.2f} for {position.quantity} units)"
            )

        exact_quantity = (value_to_sell / position.market_value) * position.quantity
        quantity = min(round(exact_quantity, trading.sell_quantity_precision), position.quantity)

        if quantity <= 0:
            raise SizingSkip(diff.instrument, f"calculated quantity {quantity} is zero or negative")

        self.logger.debug(
            f"Sizing sell of {diff.instrument}: {value_to_sell:,.2f} of {position.market_value:,.2f} "
            f"-> {exact_quantity:.8f} -> {quantity}"
        )

        return SellOrder(
            instrument=diff.instrument,
            quantity=quantity,
            original_value_difference=diff.difference
        )

    def size_buy(self, diff: InstrumentDiff) -> BuyOrder:
        """Size a buy candidate by cash value only; the broker converts it to quantity"""
        value = round(diff.difference, self.config.trading.buy_value_precision)

        if value <= 0:
            raise SizingSkip(diff.instrument, f"buy value {value:.2f} is zero or negative")

        return BuyOrder(
            instrument=diff.instrument,
            value=value,
            original_value_difference=diff.difference
        )
