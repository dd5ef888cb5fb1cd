"""Agent decision schema and its status state machine."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, FrozenSet, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from capital_agent.errors import InvalidTransitionError
from capital_agent.schemas.boundary import BoundaryCheckResultV1, BoundaryKind


class DecisionType(str, Enum):
    """Kind of financial decision."""

    ALLOCATION_CHANGE = "allocation_change"
    POSITION_ENTRY = "position_entry"
    POSITION_EXIT = "position_exit"
    POSITION_RESIZE = "position_resize"
    YIELD_HARVEST = "yield_harvest"
    YIELD_REINVEST = "yield_reinvest"
    REBALANCE = "rebalance"
    HEDGE_ACTION = "hedge_action"
    RISK_REDUCTION = "risk_reduction"
    OPPORTUNITY_CAPTURE = "opportunity_capture"
    TAX_OPTIMIZATION = "tax_optimization"
    LIQUIDITY_MANAGEMENT = "liquidity_management"
    EMERGENCY_ACTION = "emergency_action"
    LEARNING_UPDATE = "learning_update"
    BOUNDARY_ADJUSTMENT = "boundary_adjustment"


class ConfidenceLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class DecisionStatus(str, Enum):
    """Decision lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    EXECUTING = "executing"
    EXECUTED = "executed"
    FAILED = "failed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[DecisionStatus] = frozenset(
    {
        DecisionStatus.EXECUTED,
        DecisionStatus.FAILED,
        DecisionStatus.REJECTED,
        DecisionStatus.CANCELLED,
    }
)

ALLOWED_TRANSITIONS: Dict[DecisionStatus, FrozenSet[DecisionStatus]] = {
    DecisionStatus.PENDING: frozenset(
        {DecisionStatus.APPROVED, DecisionStatus.REJECTED, DecisionStatus.CANCELLED}
    ),
    DecisionStatus.APPROVED: frozenset({DecisionStatus.EXECUTING, DecisionStatus.CANCELLED}),
    DecisionStatus.EXECUTING: frozenset({DecisionStatus.EXECUTED, DecisionStatus.FAILED}),
    DecisionStatus.EXECUTED: frozenset(),
    DecisionStatus.FAILED: frozenset(),
    DecisionStatus.REJECTED: frozenset(),
    DecisionStatus.CANCELLED: frozenset(),
}


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


# ----------------------------------------------------------------------------
# Actions (tagged union on ``kind``)
# ----------------------------------------------------------------------------


class _TradeActionBase(BaseModel):
    description: str
    asset: str
    amount: float = Field(..., gt=0, description="Notional amount in account currency")
    amount_percent: float = Field(..., ge=0, description="Amount as % of portfolio equity")
    target_price: Optional[float] = None
    timeframe: str = "1D"

    @property
    def direction(self) -> TradeDirection:
        return TradeDirection.SELL

    @property
    def increases_exposure(self) -> bool:
        return False


class EntryAction(_TradeActionBase):
    """Open or add to a position."""

    kind: Literal["entry"] = "entry"
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    @property
    def direction(self) -> TradeDirection:
        return TradeDirection.BUY

    @property
    def increases_exposure(self) -> bool:
        return True


class ExitAction(_TradeActionBase):
    """Close or trim an existing position on a bearish signal."""

    kind: Literal["exit"] = "exit"


class ReduceExposureAction(_TradeActionBase):
    """Cut the largest position in response to a high-severity risk."""

    kind: Literal["reduce_exposure"] = "reduce_exposure"
    reduction_percent: float = Field(..., gt=0, le=100)


DecisionAction = Annotated[
    Union[EntryAction, ExitAction, ReduceExposureAction],
    Field(discriminator="kind"),
]


# ----------------------------------------------------------------------------
# Reasoning and outcome
# ----------------------------------------------------------------------------


class ReasoningFactorV1(BaseModel):
    factor: str
    weight: float = Field(..., ge=0, le=1)
    contribution: str


class AlternativeV1(BaseModel):
    action: str
    reason_rejected: str


class RiskMitigationV1(BaseModel):
    risk: str
    mitigation: str
    severity: Optional[float] = Field(
        default=None, ge=0, le=100, description="Severity of the analyzed risk, if any"
    )


class ReasoningV1(BaseModel):
    summary: str
    factors: List[ReasoningFactorV1] = Field(default_factory=list)
    alternatives: List[AlternativeV1] = Field(default_factory=list)
    risks: List[RiskMitigationV1] = Field(default_factory=list)
    alignment_with_mandate: str = ""


class ScenarioV1(BaseModel):
    description: str
    value: float


class ExpectedOutcomeV1(BaseModel):
    probability: float = Field(..., ge=0, le=1)
    best_case: ScenarioV1
    base_case: ScenarioV1
    worst_case: ScenarioV1
    time_to_realization: str


class ExecutionResultV1(BaseModel):
    order_id: Optional[str] = None
    actual_price: Optional[float] = None
    actual_amount: Optional[float] = None
    fees: Optional[float] = None
    slippage: Optional[float] = None
    asset_class: Optional[str] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class OutcomeLabel(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    NEUTRAL = "neutral"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"

    @property
    def is_success(self) -> bool:
        return self in (OutcomeLabel.SUCCESS, OutcomeLabel.PARTIAL_SUCCESS)

    @property
    def is_failure(self) -> bool:
        return self in (OutcomeLabel.PARTIAL_FAILURE, OutcomeLabel.FAILURE)


class OutcomeCheckpointV1(BaseModel):
    at: datetime
    value: float
    notes: str = ""


class OutcomeTrackingV1(BaseModel):
    tracked: bool = True
    checkpoints: List[OutcomeCheckpointV1] = Field(default_factory=list)
    final_outcome: Optional[OutcomeLabel] = None
    classified_at: Optional[datetime] = None
    lessons_learned: List[str] = Field(default_factory=list)

    @property
    def latest_value(self) -> Optional[float]:
        return self.checkpoints[-1].value if self.checkpoints else None

    def finalize(self, label: OutcomeLabel, at: datetime, lessons: List[str]) -> None:
        """Set the final classification. A classification is never revised."""
        if self.final_outcome is not None:
            raise InvalidTransitionError(
                f"Outcome already classified as {self.final_outcome.value}"
            )
        self.final_outcome = label
        self.classified_at = at
        self.lessons_learned.extend(lessons)


class StatusChangeV1(BaseModel):
    status: DecisionStatus
    at: datetime


# ----------------------------------------------------------------------------
# Decision
# ----------------------------------------------------------------------------


class AgentDecisionV1(BaseModel):
    """
    The atomic unit of agent action.

    Status only moves along ``ALLOWED_TRANSITIONS``; boundary-check results
    are attached once and never replaced; the final outcome classification is
    set once and never revised.
    """

    decision_id: str
    agent_id: str
    timestamp: datetime
    decision_type: DecisionType
    confidence: ConfidenceLevel
    confidence_score: float = Field(..., ge=0, le=100)

    action: DecisionAction
    reasoning: ReasoningV1
    expected_outcome: ExpectedOutcomeV1

    boundaries_checked: Optional[Tuple[BoundaryCheckResultV1, ...]] = None
    status: DecisionStatus = DecisionStatus.PENDING
    status_history: List[StatusChangeV1] = Field(default_factory=list)
    execution_result: Optional[ExecutionResultV1] = None
    outcome_tracking: OutcomeTrackingV1 = Field(default_factory=OutcomeTrackingV1)

    # Context captured at formulation time
    regime: Optional[str] = None
    source_signal_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def hard_violations(self) -> List[BoundaryCheckResultV1]:
        return [
            r for r in self.boundaries_checked or () if not r.passed and r.kind == BoundaryKind.HARD
        ]

    @property
    def soft_violations(self) -> List[BoundaryCheckResultV1]:
        return [
            r for r in self.boundaries_checked or () if not r.passed and r.kind == BoundaryKind.SOFT
        ]

    def can_transition(self, new_status: DecisionStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition(self, new_status: DecisionStatus, at: datetime) -> None:
        """Move to ``new_status`` or raise InvalidTransitionError."""
        if not self.can_transition(new_status):
            raise InvalidTransitionError(
                f"Decision {self.decision_id}: illegal transition "
                f"{self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        self.status_history.append(StatusChangeV1(status=new_status, at=at))

    def attach_boundary_checks(self, results: List[BoundaryCheckResultV1]) -> None:
        """Attach boundary results. Allowed exactly once."""
        if self.boundaries_checked is not None:
            raise InvalidTransitionError(
                f"Decision {self.decision_id}: boundary checks already attached"
            )
        self.boundaries_checked = tuple(results)
