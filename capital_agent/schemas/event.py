"""Agent event schema."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType:
    """Event type constants emitted on the event bus."""

    AGENT_CREATED = "agentCreated"
    AGENT_LOOP_STARTED = "agentLoopStarted"
    AGENT_LOOP_STOPPED = "agentLoopStopped"
    AGENT_EMERGENCY = "agentEmergency"
    AGENT_RESUMED = "agentResumed"
    AGENT_DISABLED = "agentDisabled"
    AGENT_LEARNED = "agentLearned"
    AGENT_ERROR = "agentError"
    AGENT_BOUNDARIES_UPDATED = "agentBoundariesUpdated"
    AGENT_AUTONOMY_CHANGED = "agentAutonomyChanged"
    AGENT_PERSONALITY_ADAPTED = "agentPersonalityAdapted"

    CYCLE_COMPLETED = "cycleCompleted"
    CYCLE_SKIPPED = "cycleSkipped"
    OBSERVATION_TIMEOUT = "observationTimeout"
    DAILY_DECISION_LIMIT_REACHED = "dailyDecisionLimitReached"

    DECISION_PENDING_APPROVAL = "decisionPendingApproval"
    DECISION_APPROVED = "decisionApproved"
    DECISION_EXECUTING = "decisionExecuting"
    DECISION_EXECUTED = "decisionExecuted"
    DECISION_FAILED = "decisionFailed"
    DECISION_REJECTED_BY_BOUNDARY = "decisionRejectedByBoundary"
    DECISION_CANCELLED = "decisionCancelled"
    DECISION_NOTIFICATION = "decisionNotification"


class AgentEventV1(BaseModel):
    """One event on the agent event stream."""

    event_type: str = Field(..., description="One of EventType")
    agent_id: Optional[str] = None
    decision_id: Optional[str] = None
    timestamp: datetime
    data: Dict[str, Any] = Field(default_factory=dict)
