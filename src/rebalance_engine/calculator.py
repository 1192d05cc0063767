"""Diff calculation between target weights and effective holdings"""

from typing import Dict, List, Mapping, Optional
import logging
from broker_gateway import AccountSnapshot, TargetAllocation
from rebalancer_config import AppConfig, get_config
from .models import DiffAction, DiffCalculationResult, InstrumentDiff

class AllocationDiffEngine:
    """Calculate per-instrument value differences needed for rebalancing"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or get_config()

    @property
    def deadband(self) -> float:
        return self.config.trading.deadband

    def compute_diffs(self, snapshot: AccountSnapshot, allocations: List[TargetAllocation],
                      pending_adjustments: Mapping[str, float]) -> DiffCalculationResult:
        """
        Calculate the signed difference for every instrument in
        positions | targets | pending adjustments.
        Returns DiffCalculationResult with each diff classified as sell, buy or none
        """
        total_equity = snapshot.total_equity
        position_map = snapshot.position_map()
        weight_map = self._weight_map(allocations)

        universe = set(position_map) | set(weight_map) | set(pending_adjustments)

        diffs = []
        for instrument in sorted(universe):
            position = position_map.get(instrument)
            weight = weight_map.get(instrument, 0.0)

            market_value = position.market_value if position else 0.0
            effective_value = market_value + pending_adjustments.get(instrument, 0.0)
            target_value = total_equity * weight
            difference = target_value - effective_value

            action = self._classify(difference, position is not None)

            self.logger.debug(
                f"{instrument}: target={target_value:,.2f} ({weight * 100:.2f}%), "
                f"effective={effective_value:,.2f}, difference={difference:+,.2f} -> {action}"
            )

            diffs.append(InstrumentDiff(
                instrument=instrument,
                effective_value=effective_value,
                target_value=target_value,
                difference=difference,
                target_weight=weight,
                has_position=position is not None,
                action=action
            ))

        return DiffCalculationResult(diffs=diffs)

    def _classify(self, difference: float, has_position: bool) -> DiffAction:
        """Apply the deadband; sells additionally need a held position"""
        if difference < -self.deadband and has_position:
            return 'sell'
        if difference > self.deadband:
            return 'buy'
        return 'none'

    def _weight_map(self, allocations: List[TargetAllocation]) -> Dict[str, float]:
        """The first target listed for an instrument wins"""
        weight_map = {}
        for alloc in allocations:
            if alloc.instrument in weight_map:
                self.logger.warning(
                    f"Duplicate target for {alloc.instrument}; ignoring {alloc.weight}, "
                    f"keeping {weight_map[alloc.instrument]}"
                )
                continue
            weight_map[alloc.instrument] = alloc.weight
        return weight_map
