"""Simple end-to-end run of one Capital Agent.

This script walks one agent through the core components:
- Static market observations
- Analysis and decision formulation
- Boundary checks and paper execution
- Outcome learning after the waiting period
- Explanations
"""

from datetime import datetime
from pathlib import Path

from capital_agent.agent.lifecycle import AgentManager
from capital_agent.execution.adapter import InMemoryPortfolio, PaperExecutionAdapter
from capital_agent.explain.engine import ExplanationLevel
from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.sources.static import StaticObservationSource
from capital_agent.utils.helpers import SimulatedClock
from capital_agent.utils.logging import configure_logging, get_logger

configure_logging(
    log_file=Path("logs/simple_agent.log"), log_level="INFO", console_level="WARNING"
)
logger = get_logger("simple_agent")

print("=" * 60)
print("Capital Agent - Simple Run")
print("=" * 60)

# 1. Market and paper account
print("\n1. Setting up static market and paper account...")
clock = SimulatedClock(datetime(2024, 1, 3, 12, 0))
source = StaticObservationSource(clock=clock)
portfolio = InMemoryPortfolio(sectors={"SPY": "broad_market"})
adapter = PaperExecutionAdapter(portfolio, price_lookup=source.price_of)
print(f"   SPY at {source.price_of('SPY'):.2f}")

# 2. Agent
print("\n2. Creating agent...")
manager = AgentManager(source, adapter, portfolio, clock=clock)
config = manager.create_agent(
    AgentConfigV1(user_id="demo", name="Steady", autonomy_level="full"), start=False
)
portfolio.open_account(config.agent_id, 100_000.0)
print(f"   {config.agent_id} with {len(config.boundaries)} boundaries")

# 3. Ten daily cycles on a rising market
print("\n3. Running ten daily cycles...")
for day in range(10):
    report = manager.run_cycle(config.agent_id)
    print(
        f"   Day {day}: decisions={len(report.decisions)} executed={len(report.executed)} "
        f"rejected={len(report.rejected)} classified={report.classified}"
    )
    clock.advance(days=1)
    source.advance(0.5)
    portfolio.update_prices(source.prices())

# 4. Results
performance = manager.get_performance(config.agent_id, refresh=True)
print("\n4. Results:")
print(f"   - Decisions: {performance.total_decisions}")
print(f"   - Win rate: {performance.win_rate * 100:.1f}%")
print(f"   - Risk tolerance: {manager.get_agent(config.agent_id).personality.risk_tolerance:g}")

decisions = manager.get_decisions(config.agent_id)
if decisions:
    print("\n5. First decision explained:")
    print(manager.explain_decision(decisions[0].decision_id, ExplanationLevel.DETAILED))

manager.shutdown()
logger.info(f"Run finished with {performance.total_decisions} decisions")

print("\n" + "=" * 60)
print("Run complete")
print("=" * 60)
