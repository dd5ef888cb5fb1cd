"""Simulation file schema consumed by the ``capital-agent run`` command."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.observation import QuoteV1
from capital_agent.schemas.settings import EngineSettingsV1


class SimulationConfigV1(BaseModel):
    """Agents plus the starting market and account state for a paper run."""

    settings: EngineSettingsV1 = Field(default_factory=EngineSettingsV1)
    starting_cash: float = Field(default=100_000.0, gt=0)
    agents: List[AgentConfigV1] = Field(..., min_length=1)
    regime: Optional[str] = Field(None, description="Override the static source regime")
    quotes: Dict[str, QuoteV1] = Field(
        default_factory=dict, description="Extra or replacement quotes for the static source"
    )
