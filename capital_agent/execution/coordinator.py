"""Execution coordinator: approved decisions to the execution adapter and back."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Optional

from capital_agent.decisions.ledger import DecisionLedger
from capital_agent.errors import ExecutionError
from capital_agent.events import EventBus
from capital_agent.execution.adapter import (
    ExecutionAdapter,
    ExecutionReportV1,
    OrderRequestV1,
    infer_asset_class,
)
from capital_agent.schemas.decision import (
    AgentDecisionV1,
    DecisionStatus,
    EntryAction,
    ExecutionResultV1,
)
from capital_agent.schemas.event import EventType
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.utils.helpers import Clock

logger = logging.getLogger(__name__)


def build_order(decision: AgentDecisionV1) -> OrderRequestV1:
    """Translate a decision's action into an adapter order."""
    action = decision.action
    return OrderRequestV1(
        agent_id=decision.agent_id,
        client_order_id=f"ACA-{decision.decision_id}",
        symbol=action.asset,
        side=action.direction.value,
        notional=action.amount,
        stop_price=action.stop_loss if isinstance(action, EntryAction) else None,
        asset_class=infer_asset_class(action.asset),
    )


class ExecutionCoordinator:
    """
    Submits approved decisions and records the result.

    The adapter call runs on a worker thread and is bounded by
    ``execution_timeout_seconds``; no lock is held while waiting. Any adapter
    error or timeout marks the decision ``failed``. Failures are not retried.
    """

    def __init__(
        self,
        adapter: ExecutionAdapter,
        ledger: DecisionLedger,
        events: EventBus,
        settings: EngineSettingsV1,
        clock: Optional[Clock] = None,
        max_workers: int = 4,
    ):
        self.adapter = adapter
        self.ledger = ledger
        self.events = events
        self.settings = settings
        self._clock = clock or datetime.now
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="execute")

    def execute(self, decision_id: str) -> AgentDecisionV1:
        """
        Execute one approved decision.

        A decision that is no longer ``approved`` (e.g. cancelled by an
        emergency stop) is left untouched.

        Returns:
            Copy of the decision after execution
        """
        if not self.ledger.try_transition(decision_id, DecisionStatus.EXECUTING, self._clock()):
            logger.debug(f"Decision {decision_id} is no longer approved; not executing")
            return self.ledger.get(decision_id)

        decision = self.ledger.get(decision_id)
        self.events.emit(
            EventType.DECISION_EXECUTING, agent_id=decision.agent_id, decision_id=decision_id
        )
        order = build_order(decision)

        try:
            report = self._submit(order)
        except ExecutionError as e:
            return self._fail(decision, order, str(e))

        amount = report.filled_notional or order.notional
        result = ExecutionResultV1(
            order_id=report.order_id,
            actual_price=report.filled_price,
            actual_amount=amount,
            fees=amount * self.settings.fee_rate,
            slippage=amount * self.settings.slippage_rate,
            asset_class=order.asset_class.value,
            completed_at=self._clock(),
        )

        def complete(d: AgentDecisionV1) -> AgentDecisionV1:
            d.execution_result = result
            d.transition(DecisionStatus.EXECUTED, result.completed_at)
            return d.model_copy(deep=True)

        executed = self.ledger.update(decision_id, complete)
        logger.info(
            f"Executed {decision_id}: {order.side} {order.symbol} "
            f"{amount:,.2f} @ {report.filled_price}"
        )
        self.events.emit(
            EventType.DECISION_EXECUTED,
            agent_id=decision.agent_id,
            decision_id=decision_id,
            order_id=report.order_id,
            price=report.filled_price,
            amount=amount,
        )
        return executed

    def _submit(self, order: OrderRequestV1) -> ExecutionReportV1:
        timeout = self.settings.execution_timeout_seconds
        future = self._executor.submit(self.adapter.submit, order)
        try:
            report = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise ExecutionError(f"Adapter timed out after {timeout:g}s") from None
        except Exception as e:
            raise ExecutionError(f"Adapter raised: {e}") from e

        if not isinstance(report, ExecutionReportV1):
            raise ExecutionError(f"Adapter returned {type(report).__name__}, expected a report")
        if not report.success:
            raise ExecutionError(report.error or "Adapter reported failure")
        return report

    def _fail(
        self, decision: AgentDecisionV1, order: OrderRequestV1, error: str
    ) -> AgentDecisionV1:
        at = self._clock()

        def fail(d: AgentDecisionV1) -> AgentDecisionV1:
            d.execution_result = ExecutionResultV1(
                asset_class=order.asset_class.value, completed_at=at, error=error
            )
            d.transition(DecisionStatus.FAILED, at)
            return d.model_copy(deep=True)

        failed = self.ledger.update(decision.decision_id, fail)
        logger.warning(f"Execution of {decision.decision_id} failed: {error}")
        self.events.emit(
            EventType.DECISION_FAILED,
            agent_id=decision.agent_id,
            decision_id=decision.decision_id,
            error=error,
        )
        return failed

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
