"""Error taxonomy for the agent core.

Boundary violations are not exceptions: they surface as rejected decisions.
"""


class CapitalAgentError(Exception):
    """Base class for all agent core errors."""

    pass


class ConfigurationError(CapitalAgentError):
    """Raised for malformed configuration or unknown identifiers."""

    pass


class AgentNotFoundError(ConfigurationError):
    """Raised when an operation names an agent that is not registered."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class DecisionNotFoundError(ConfigurationError):
    """Raised when an operation names a decision that does not exist."""

    def __init__(self, decision_id: str):
        super().__init__(f"Decision not found: {decision_id}")
        self.decision_id = decision_id


class InvalidTransitionError(CapitalAgentError):
    """Raised on an illegal decision status transition or a rewrite of an immutable field."""

    pass


class ExecutionError(CapitalAgentError):
    """Adapter-reported execution failure. Always mapped to a failed decision."""

    pass
