"""Decision formulation and the decision ledger."""

from capital_agent.decisions.formulator import (
    DecisionFormulator,
    infer_decision_type,
    map_confidence,
)
from capital_agent.decisions.ledger import DecisionLedger

__all__ = ["DecisionFormulator", "DecisionLedger", "infer_decision_type", "map_confidence"]
