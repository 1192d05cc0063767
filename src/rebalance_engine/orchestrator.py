"""Two-phase sell-then-buy rebalancer"""

import uuid
from typing import List, Optional
import logging

from broker_gateway import (
    AccountContext,
    AccountContextProvider,
    AccountSnapshot,
    BrokerAPIError,
    BrokerConnectionError,
    BrokerGateway,
    BuyOrder,
    FailedOrder,
    OrderResult,
    Position,
    ProgressSink,
    RebalanceOrder,
    RebalancePreview,
    RebalanceResult,
    SellOrder,
    SetupError,
    Severity,
    SizingSkip,
    SkippedOrder,
    TargetAllocation,
    TickerResolver,
)
from rebalancer_config import AppConfig, get_config
from .calculator import AllocationDiffEngine
from .context import clear_current_run, get_current_run, set_current_run
from .models import InstrumentDiff, RunInfo
from .pacer import Pacer
from .pending import PendingAdjustmentTracker
from .retry import RetryPolicy
from .sizing import OrderSizer


class RebalanceOrchestrator:
    """Drive ticker resolution, the sell phase, a re-snapshot and the buy phase

    Orders are placed strictly one at a time with a pacing delay after each
    candidate. Already placed orders are never rolled back.
    """

    def __init__(
        self,
        gateway: BrokerGateway,
        resolver: TickerResolver,
        context_provider: AccountContextProvider,
        progress_sink: ProgressSink,
        pacer: Optional[Pacer] = None,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[AppConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self.gateway = gateway
        self.resolver = resolver
        self.context_provider = context_provider
        self.progress_sink = progress_sink
        self.pacer = pacer or Pacer.from_config(self.config)
        self.tracker = PendingAdjustmentTracker(logger=self.logger)
        self.diff_engine = AllocationDiffEngine(config=self.config, logger=self.logger)
        self.sizer = OrderSizer(config=self.config, logger=self.logger)
        self.retry_policy = retry_policy or RetryPolicy(config=self.config, logger=self.logger)

    async def rebalance(self, allocations: List[TargetAllocation]) -> RebalanceResult:
        """Execute rebalancing toward the target allocations"""
        result = RebalanceResult()
        set_current_run(RunInfo(run_id=uuid.uuid4().hex[:12]))
        self.logger.info(f"Starting rebalance with {len(allocations)} target allocations")

        try:
            allocations = await self._resolve_tickers(allocations, result.dropped_tickers)
            context = await self._get_account_context()
            self._log_target_allocations(allocations)

            # Phase 1: sells, sized against the pre-sell snapshot
            await self._emit('Phase 1: Calculating sell orders...')
            snapshot = await self.gateway.fetch_snapshot(context)
            self._log_account_snapshot("INITIAL", snapshot)

            pending = self.tracker.build(snapshot)
            sells = self.diff_engine.compute_diffs(snapshot, allocations, pending).sells
            await self._execute_sells(context, snapshot, sells, result)

            # Phase 2: sells change available cash, so buys need a fresh snapshot
            await self._emit('Phase 2: Calculating buy orders...')
            snapshot = await self.gateway.fetch_snapshot(context)
            self._log_account_snapshot("POST-SELL", snapshot)

            pending = self.tracker.build(snapshot)
            buys = self.diff_engine.compute_diffs(snapshot, allocations, pending).buys
            await self._execute_buys(context, buys, result)

            result.total_equity = snapshot.total_equity
            result.success = True
            self.logger.info(
                f"Rebalance completed: {len(result.orders)} placed, {len(result.failed_orders)} failed, "
                f"{len(result.skipped)} skipped"
            )
            await self._emit('Rebalancing process complete!', 'notice', is_final=True)

        except Exception as e:
            self.logger.error(f"Rebalance failed: {str(e)}")
            result.success = False
            result.error = str(e)
            await self._emit(f'CRITICAL ERROR: {e}', 'error', is_final=True)

        finally:
            clear_current_run()

        return result

    async def calculate_rebalance(self, allocations: List[TargetAllocation]) -> RebalancePreview:
        """Calculate rebalance without executing (preview)

        Buys are estimated from the same pre-sell snapshot as the sells.
        """
        set_current_run(RunInfo(run_id=uuid.uuid4().hex[:12]))
        try:
            dropped: List[str] = []
            allocations = await self._resolve_tickers(allocations, dropped)
            context = await self._get_account_context()
            self._log_target_allocations(allocations)

            snapshot = await self.gateway.fetch_snapshot(context)
            self._log_account_snapshot("CURRENT", snapshot)

            pending = self.tracker.build(snapshot)
            diffs = self.diff_engine.compute_diffs(snapshot, allocations, pending)
            position_map = snapshot.position_map()

            skipped: List[SkippedOrder] = []
            proposed_sells = []
            for diff in diffs.sells:
                order = await self._plan_sell(context, diff, position_map[diff.instrument], skipped)
                if order:
                    proposed_sells.append(order)
                await self.pacer.wait()

            proposed_buys = []
            for diff in diffs.buys:
                order = await self._plan_buy(diff, skipped)
                if order:
                    proposed_buys.append(order)

            self._log_planned_orders(proposed_sells, proposed_buys, is_preview=True)

            return RebalancePreview(
                proposed_sells=proposed_sells,
                proposed_buys=proposed_buys,
                skipped=skipped,
                dropped_tickers=dropped,
                total_equity=snapshot.total_equity,
                success=True,
                warnings=[s.reason for s in skipped]
            )
        finally:
            clear_current_run()

    async def _resolve_tickers(self, allocations: List[TargetAllocation],
                               dropped: List[str]) -> List[TargetAllocation]:
        """Map raw symbols to instrument codes; unresolvable targets are dropped"""
        suffixes = tuple(self.config.resolver.instrument_code_suffixes)
        await self._emit('Phase 0: Converting tickers if necessary...')

        resolved = []
        for alloc in allocations:
            if alloc.instrument.endswith(suffixes):
                resolved.append(alloc)
                continue

            await self._emit(f'  - Ticker "{alloc.instrument}" may need conversion.')
            try:
                code = await self.resolver.resolve(alloc.instrument)
            except Exception as e:
                self.logger.warning(f"Ticker resolver failed for {alloc.instrument}: {e}")
                code = None

            if code:
                await self._emit(f'  - Converted ticker "{alloc.instrument}" to "{code}"', 'notice')
                resolved.append(alloc.model_copy(update={'instrument': code}))
            else:
                await self._emit(f'  - Ticker "{alloc.instrument}" not found.', 'warning')
                dropped.append(alloc.instrument)

        if dropped:
            await self._emit(
                f'{len(dropped)} ticker(s) could not be converted and were removed: {", ".join(dropped)}',
                'warning'
            )

        if not resolved:
            raise SetupError("No target allocations left to rebalance toward")

        return resolved

    async def _get_account_context(self) -> AccountContext:
        """Failure to obtain a context is fatal to the run"""
        try:
            context = await self.context_provider.get_context()
        except SetupError:
            raise
        except Exception as e:
            raise SetupError(f"Could not obtain account context: {e}") from e

        run = get_current_run()
        if run:
            set_current_run(run.model_copy(update={
                'account_id': context.account_id,
                'trading_mode': context.trading_mode
            }))

        severity: Severity = 'warning' if context.trading_mode == 'LIVE' else 'notice'
        await self._emit(
            f'--- OPERATING IN {context.trading_mode} MODE (Account ID: {context.account_id}) ---',
            severity
        )
        return context

    async def _execute_sells(self, context: AccountContext, snapshot: AccountSnapshot,
                             sells: List[InstrumentDiff], result: RebalanceResult):
        """Size and place sell orders one at a time"""
        if not sells:
            await self._emit('No sell orders needed.')
            return

        await self._emit(f'Found {len(sells)} sell orders to execute.', 'notice')
        position_map = snapshot.position_map()

        for diff in sells:
            order = await self._plan_sell(context, diff, position_map[diff.instrument], result.skipped)
            if order:
                await self._submit(context, order, result)
            await self.pacer.wait()

    async def _execute_buys(self, context: AccountContext, buys: List[InstrumentDiff],
                            result: RebalanceResult):
        """Size and place buy orders one at a time"""
        if not buys:
            await self._emit('No buy orders needed.')
            return

        await self._emit(f'Found {len(buys)} buy orders to execute.', 'notice')

        for diff in buys:
            order = await self._plan_buy(diff, result.skipped)
            if order:
                await self._submit(context, order, result)
            await self.pacer.wait()

    async def _plan_sell(self, context: AccountContext, diff: InstrumentDiff, position: Position,
                         skipped: List[SkippedOrder]) -> Optional[SellOrder]:
        """Look up broker limits and size one sell; skips are recorded, not raised"""
        currency = self.config.trading.currency_code
        try:
            limits = await self.gateway.get_order_limits(context, diff.instrument, currency)
            order = self.sizer.size_sell(diff, position, limits)
        except SizingSkip as skip:
            await self._emit(f'  - SKIPPING sell for {skip.instrument}: {skip.reason}.', 'warning')
            skipped.append(SkippedOrder(instrument=skip.instrument, side='SELL', reason=skip.reason))
            return None
        except (BrokerAPIError, BrokerConnectionError) as e:
            await self._emit(f'  - ERROR processing sell for {diff.instrument}: {e}', 'error')
            skipped.append(SkippedOrder(
                instrument=diff.instrument,
                side='SELL',
                reason=f"order limits lookup failed: {e}"
            ))
            return None

        if order.is_liquidation:
            await self._emit(f'  - LIQUIDATING {order.quantity} of {order.instrument}')
        return order

    async def _plan_buy(self, diff: InstrumentDiff, skipped: List[SkippedOrder]) -> Optional[BuyOrder]:
        try:
            return self.sizer.size_buy(diff)
        except SizingSkip as skip:
            await self._emit(f'  - SKIPPING buy for {skip.instrument}: {skip.reason}.', 'warning')
            skipped.append(SkippedOrder(instrument=skip.instrument, side='BUY', reason=skip.reason))
            return None

    async def _submit(self, context: AccountContext, order: RebalanceOrder, result: RebalanceResult):
        """Place an order, retrying at most once with a corrected order"""
        action = order.side
        currency = self.config.trading.currency_code
        await self._emit(f'  - Attempting to {self._describe(order, currency)}')

        try:
            await self._place(context, order)
        except BrokerAPIError as err:
            decision = self.retry_policy.decide(order, err.message)
            if not decision.should_retry:
                await self._emit(
                    f'    FAILED to {action.lower()} {order.instrument}: {err.message} ({decision.reason})',
                    'error'
                )
                result.failed_orders.append(FailedOrder(order=order, error=err.message))
                return
        except BrokerConnectionError as err:
            await self._emit(f'    FAILED to {action.lower()} {order.instrument}: {err}', 'error')
            result.failed_orders.append(FailedOrder(order=order, error=str(err)))
            return
        else:
            await self._emit(f'    SUCCESS: {action.title()} order for {order.instrument} placed.', 'success')
            result.orders.append(order)
            return

        retry_order = decision.retry_order
        await self._emit(f'    ! {decision.reason.capitalize()}. Retrying...', 'warning')
        await self._emit(f'    - Retrying: {self._describe(retry_order, currency)}')

        try:
            await self._place(context, retry_order)
        except (BrokerAPIError, BrokerConnectionError) as retry_err:
            await self._emit(f'    FAILED on retry for {order.instrument}: {retry_err}', 'error')
            result.failed_orders.append(FailedOrder(order=retry_order, error=str(retry_err)))
            return

        await self._emit(f'    SUCCESS: Adjusted {action.lower()} order for {order.instrument} placed.', 'success')
        result.orders.append(retry_order)

    async def _place(self, context: AccountContext, order: RebalanceOrder) -> OrderResult:
        if isinstance(order, SellOrder):
            order_result = await self.gateway.place_sell_order(context, order.instrument, order.quantity)
        else:
            order_result = await self.gateway.place_buy_order(context, order.instrument, order.value)
        self.logger.debug(
            f"Broker accepted {order.side} {order.instrument}: "
            f"order_id={order_result.order_id}, status={order_result.status}"
        )
        return order_result

    async def _emit(self, message: str, severity: Severity = 'info', is_final: bool = False):
        """Progress sink failures never interrupt the run"""
        try:
            await self.progress_sink.emit(message, severity, is_final)
        except Exception as e:
            self.logger.warning(f"Progress sink failed to emit '{message}': {e}")

    @staticmethod
    def _describe(order: RebalanceOrder, currency: str) -> str:
        if isinstance(order, SellOrder):
            return f"SELL {order.quantity} of {order.instrument}"
        return f"BUY {order.value:.2f} {currency} of {order.instrument}"

    def _log_account_snapshot(self, stage: str, snapshot: AccountSnapshot):
        """Log detailed account snapshot"""
        total_equity = snapshot.total_equity
        positions = snapshot.positions

        self.logger.info(f"====== {stage} ACCOUNT SNAPSHOT ======")
        self.logger.info(f"Account ID: {snapshot.account_id}")
        self.logger.info(f"Total Equity: {total_equity:,.2f}")

        if positions:
            self.logger.info(f"Positions ({len(positions)}):")
            for pos in sorted(positions, key=lambda x: x.instrument):
                percent_of_account = (pos.market_value / total_equity * 100) if total_equity > 0 else 0
                price = f" @ {pos.current_price:.2f}" if pos.current_price else ""
                self.logger.info(f"  {pos.instrument}: {pos.quantity:,} units{price} "
                                 f"= {pos.market_value:,.2f} ({percent_of_account:.2f}%)")
        else:
            self.logger.info("No positions held")

        if snapshot.outstanding_value_orders or snapshot.outstanding_quantity_orders:
            self.logger.info(
                f"Outstanding orders: {len(snapshot.outstanding_value_orders)} by value, "
                f"{len(snapshot.outstanding_quantity_orders)} by quantity"
            )
        self.logger.info("=" * 40)

    def _log_target_allocations(self, allocations: List[TargetAllocation]):
        """Log target allocation percentages"""
        self.logger.info(f"====== TARGET ALLOCATIONS ({len(allocations)}) ======")
        total_weight = sum(alloc.weight for alloc in allocations)

        for alloc in sorted(allocations, key=lambda x: x.instrument):
            self.logger.info(f"  {alloc.instrument}: {alloc.weight * 100:.2f}%")

        self.logger.info(f"Total Allocation: {total_weight * 100:.2f}%")
        self.logger.info("=" * 35)

    def _log_planned_orders(self, sells: List[SellOrder], buys: List[BuyOrder], is_preview: bool = False):
        """Log planned orders"""
        stage = "PROPOSED ORDERS (PREVIEW)" if is_preview else "PLANNED ORDERS"
        self.logger.info(f"====== {stage} ======")

        if not sells and not buys:
            self.logger.info("No orders required - portfolio is already balanced")
            self.logger.info("=" * (len(stage) + 14))
            return

        total_buy_value = sum(b.value for b in buys)
        total_sell_value = sum(abs(s.original_value_difference) for s in sells)
        self.logger.info(f"Total Orders: {len(sells) + len(buys)} ({len(sells)} sells, {len(buys)} buys)")
        self.logger.info(f"Approximate Sell Value: {total_sell_value:,.2f}")
        self.logger.info(f"Total Buy Value: {total_buy_value:,.2f}")

        if sells:
            self.logger.info("SELL Orders:")
            for order in sells:
                kind = "liquidation" if order.is_liquidation else "partial"
                self.logger.info(f"  SELL {order.quantity} of {order.instrument} ({kind}, "
                                 f"difference {order.original_value_difference:+,.2f})")

        if buys:
            self.logger.info("BUY Orders:")
            for order in buys:
                self.logger.info(f"  BUY {order.value:,.2f} of {order.instrument}")

        self.logger.info("=" * (len(stage) + 14))
