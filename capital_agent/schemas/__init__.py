"""Pydantic schemas for all agent records."""

from capital_agent.schemas.agent_config import (
    ActiveHoursV1,
    AgentConfigV1,
    AgentMandate,
    AutonomyLevel,
    ExplanationStyle,
    KnownBiasV1,
    PersonalityV1,
)
from capital_agent.schemas.boundary import (
    AgentBoundaryV1,
    BoundaryCategory,
    BoundaryCheckResultV1,
    BoundaryKind,
    BoundaryMetric,
    Comparator,
)
from capital_agent.schemas.decision import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AgentDecisionV1,
    AlternativeV1,
    ConfidenceLevel,
    DecisionStatus,
    DecisionType,
    EntryAction,
    ExecutionResultV1,
    ExitAction,
    ExpectedOutcomeV1,
    OutcomeCheckpointV1,
    OutcomeLabel,
    OutcomeTrackingV1,
    ReasoningFactorV1,
    ReasoningV1,
    ReduceExposureAction,
    RiskMitigationV1,
    ScenarioV1,
    TradeDirection,
)
from capital_agent.schemas.event import AgentEventV1, EventType
from capital_agent.schemas.memory import (
    AgentMemoryV1,
    AssetStatsV1,
    LongTermMemoryV1,
    NegativePatternV1,
    PositivePatternV1,
    RegimeStatsV1,
    ShortTermMemoryV1,
)
from capital_agent.schemas.observation import (
    CorrelationPayload,
    EmptyPayload,
    MetricsPayload,
    ObservationCategory,
    ObservationV1,
    PricePayload,
    QuoteV1,
    RegimePayload,
    SentimentPayload,
    VolatilityPayload,
)
from capital_agent.schemas.performance import AgentPerformanceV1
from capital_agent.schemas.portfolio import PortfolioStateV1, PositionV1
from capital_agent.schemas.settings import EngineSettingsV1, load_settings
from capital_agent.schemas.signal import (
    AnalysisResultV1,
    OpportunitySignalV1,
    RecommendationKind,
    RecommendationV1,
    RiskAssessmentV1,
    SignalDirection,
    SignalKind,
)
from capital_agent.schemas.simulation import SimulationConfigV1

__all__ = [
    # Agent config
    "AgentConfigV1",
    "AgentMandate",
    "AutonomyLevel",
    "ExplanationStyle",
    "PersonalityV1",
    "KnownBiasV1",
    "ActiveHoursV1",
    # Boundary
    "AgentBoundaryV1",
    "BoundaryKind",
    "BoundaryCategory",
    "BoundaryMetric",
    "BoundaryCheckResultV1",
    "Comparator",
    # Decision
    "AgentDecisionV1",
    "DecisionType",
    "DecisionStatus",
    "ConfidenceLevel",
    "TradeDirection",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "EntryAction",
    "ExitAction",
    "ReduceExposureAction",
    "ReasoningV1",
    "ReasoningFactorV1",
    "AlternativeV1",
    "RiskMitigationV1",
    "ExpectedOutcomeV1",
    "ScenarioV1",
    "ExecutionResultV1",
    "OutcomeLabel",
    "OutcomeCheckpointV1",
    "OutcomeTrackingV1",
    # Event
    "AgentEventV1",
    "EventType",
    # Memory
    "AgentMemoryV1",
    "ShortTermMemoryV1",
    "LongTermMemoryV1",
    "PositivePatternV1",
    "NegativePatternV1",
    "RegimeStatsV1",
    "AssetStatsV1",
    # Observation
    "ObservationV1",
    "ObservationCategory",
    "QuoteV1",
    "PricePayload",
    "VolatilityPayload",
    "SentimentPayload",
    "RegimePayload",
    "CorrelationPayload",
    "MetricsPayload",
    "EmptyPayload",
    # Performance
    "AgentPerformanceV1",
    # Portfolio
    "PortfolioStateV1",
    "PositionV1",
    # Settings
    "EngineSettingsV1",
    "load_settings",
    # Signal
    "OpportunitySignalV1",
    "SignalKind",
    "SignalDirection",
    "RiskAssessmentV1",
    "RecommendationV1",
    "RecommendationKind",
    "AnalysisResultV1",
    # Simulation
    "SimulationConfigV1",
]
