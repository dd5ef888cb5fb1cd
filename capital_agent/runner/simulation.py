"""Paper simulation runner: agents against the static source and paper adapter."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from capital_agent.agent.cycle import CycleReport
from capital_agent.agent.lifecycle import AgentManager
from capital_agent.execution.adapter import InMemoryPortfolio, PaperExecutionAdapter
from capital_agent.runner.progress import CycleProgress, CycleStats
from capital_agent.schemas.decision import DecisionStatus
from capital_agent.schemas.simulation import SimulationConfigV1
from capital_agent.sources.static import StaticObservationSource
from capital_agent.utils.helpers import SimulatedClock

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of a paper run."""

    agent_ids: List[str]
    reports: Dict[str, List[CycleReport]] = field(default_factory=dict)
    approved_by_operator: List[str] = field(default_factory=list)
    stats: Optional[CycleStats] = None


class PaperSimulation:
    """
    Drives every configured agent for a number of cycles on a simulated clock.

    Each step runs one cycle per agent (agents in parallel), optionally
    approves whatever is left pending, then advances the clock and drifts
    the static market.

    Example:
        >>> sim = PaperSimulation(SimulationConfigV1.model_validate(raw))
        >>> result = sim.run(cycles=30, step_hours=24)
        >>> sim.manager.get_performance(result.agent_ids[0]).win_rate
        0.66
    """

    def __init__(
        self,
        config: SimulationConfigV1,
        start: Optional[datetime] = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.show_progress = show_progress
        self.clock = SimulatedClock(start)

        self.source = StaticObservationSource(clock=self.clock)
        if config.regime:
            self.source.set_regime(config.regime)
        for symbol, quote in config.quotes.items():
            self.source.set_quote(symbol, quote)

        settings = config.settings
        self.portfolio = InMemoryPortfolio()
        self.adapter = PaperExecutionAdapter(
            self.portfolio,
            price_lookup=self.source.price_of,
            slippage_rate=settings.slippage_rate,
            fee_rate=settings.fee_rate,
        )
        self.manager = AgentManager(
            self.source, self.adapter, self.portfolio, settings=settings, clock=self.clock
        )

        self.agent_ids: List[str] = []
        for agent_config in config.agents:
            created = self.manager.create_agent(agent_config, start=False)
            self.portfolio.open_account(created.agent_id, config.starting_cash)
            self.agent_ids.append(created.agent_id)

    def _approve_pending(self, report: CycleReport) -> List[str]:
        approved = []
        for decision_id in report.pending:
            if self.manager.get_decision(decision_id).status != DecisionStatus.PENDING:
                continue
            self.manager.approve_decision(report.agent_id, decision_id)
            approved.append(decision_id)
        return approved

    def run(
        self,
        cycles: int,
        step_hours: float = 24.0,
        drift_pct: float = 0.5,
        auto_approve: bool = False,
    ) -> SimulationResult:
        """
        Run ``cycles`` steps.

        Args:
            cycles: Number of steps; every agent runs one cycle per step
            step_hours: Simulated time between steps
            drift_pct: Percent each quote moves along its trend per step
            auto_approve: Approve decisions left pending for a human

        Returns:
            SimulationResult with every cycle report
        """
        result = SimulationResult(agent_ids=list(self.agent_ids))
        for agent_id in self.agent_ids:
            result.reports[agent_id] = []

        logger.info(
            f"Paper simulation: {len(self.agent_ids)} agents x {cycles} cycles, "
            f"step {step_hours:g}h, drift {drift_pct:g}%"
        )
        progress = CycleProgress(
            total_cycles=cycles * len(self.agent_ids),
            description="Paper simulation",
            show_progress_bar=self.show_progress,
        )
        with progress, ThreadPoolExecutor(
            max_workers=len(self.agent_ids), thread_name_prefix="agent"
        ) as pool:
            for _ in range(cycles):
                reports = list(pool.map(self.manager.run_cycle, self.agent_ids))
                for report in reports:
                    result.reports[report.agent_id].append(report)
                    progress.record(report)
                    if auto_approve and report.pending:
                        result.approved_by_operator.extend(self._approve_pending(report))

                self.clock.advance(hours=step_hours)
                self.source.advance(drift_pct)
                self.portfolio.update_prices(self.source.prices())

        result.stats = progress.get_stats()
        return result

    def shutdown(self) -> None:
        self.manager.shutdown()
