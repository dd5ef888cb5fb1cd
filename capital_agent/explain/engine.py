"""
Explanation engine.

Read-side projections of decisions and agents into human-readable text.
Nothing here mutates state; callers pass snapshots.
"""

from enum import Enum
from typing import List, Optional

from capital_agent.schemas.agent_config import AgentConfigV1, ExplanationStyle
from capital_agent.schemas.decision import AgentDecisionV1, DecisionAction, RiskMitigationV1
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.performance import AgentPerformanceV1


class ExplanationLevel(str, Enum):
    SIMPLE = "simple"  # One narrative paragraph
    DETAILED = "detailed"  # Structured markdown sections
    TECHNICAL = "technical"  # Full record dump


_EDUCATIONAL_NOTES = [
    "Confidence is the agent's own 0-100 score, bucketed from very_low to very_high.",
    "Hard boundaries block a decision outright; soft boundaries only flag it.",
    "Outcomes are classified a week after execution against the expected scenarios.",
]


_VERBS = {"entry": "buy", "exit": "sell", "reduce_exposure": "trim"}


def trade_phrase(action: DecisionAction) -> str:
    """Plain-language trade, e.g. ``buy 3,750.00 of SPY``."""
    return f"{_VERBS[action.kind]} {action.amount:,.2f} of {action.asset}"


def top_risk(risks: List[RiskMitigationV1]) -> Optional[RiskMitigationV1]:
    """Most severe analyzed risk, else the first risk that is not a soft-boundary note."""
    rated = [r for r in risks if r.severity is not None]
    if rated:
        return max(rated, key=lambda r: r.severity)
    return next((r for r in risks if not r.risk.startswith("soft_boundary:")), None)


def default_level(style: ExplanationStyle) -> ExplanationLevel:
    """Explanation level implied by a personality's explanation style."""
    if style == ExplanationStyle.CONCISE:
        return ExplanationLevel.SIMPLE
    return ExplanationLevel.DETAILED


class ExplanationEngine:
    """
    Renders decisions and agent state as text.

    Example:
        >>> engine = ExplanationEngine()
        >>> print(engine.explain_decision(decision, ExplanationLevel.SIMPLE))
        I decided to buy 3,750.00 of SPY because momentum opportunity in SPY ...
    """

    def explain_decision(
        self,
        decision: AgentDecisionV1,
        level: ExplanationLevel = ExplanationLevel.DETAILED,
        educational: bool = False,
    ) -> str:
        level = ExplanationLevel(level)
        if level == ExplanationLevel.SIMPLE:
            return self._simple(decision)
        if level == ExplanationLevel.TECHNICAL:
            return decision.model_dump_json(indent=2)
        return self._detailed(decision, educational)

    def _simple(self, d: AgentDecisionV1) -> str:
        risk = top_risk(d.reasoning.risks)
        risk_text = risk.risk.replace("_", " ") if risk else "market conditions changing"
        base = d.expected_outcome.base_case
        return (
            f"I decided to {trade_phrase(d.action)} because {d.reasoning.summary.rstrip('.')}. "
            f"My confidence is {d.confidence.value} ({d.confidence_score:g}%). "
            f"If things go well, we could see {base.description.lower()} "
            f"(about {base.value:+,.2f}). "
            f"The main risk is {risk_text}."
        )

    def _detailed(self, d: AgentDecisionV1, educational: bool) -> str:
        lines: List[str] = ["## Decision Analysis", ""]
        lines.append(f"**Action:** {d.action.description}")
        lines.append(
            f"**Trade:** {d.action.direction.value} {d.action.asset} "
            f"{d.action.amount:,.2f} ({d.action.amount_percent:.2f}% of equity)"
        )
        lines.append(f"**Confidence:** {d.confidence.value} ({d.confidence_score:g}%)")
        lines.append(f"**Status:** {d.status.value}")
        lines.append("")

        lines += ["### Reasoning", d.reasoning.summary, ""]
        if d.reasoning.alignment_with_mandate:
            lines += [d.reasoning.alignment_with_mandate, ""]

        lines.append("### Contributing Factors")
        for factor in d.reasoning.factors:
            lines.append(
                f"- **{factor.factor}** (weight: {factor.weight:g}): {factor.contribution}"
            )

        lines += ["", "### Alternatives Considered"]
        for alt in d.reasoning.alternatives:
            lines.append(f"- {alt.action}: Rejected because {alt.reason_rejected}")

        lines += ["", "### Risk Management"]
        for risk in d.reasoning.risks:
            lines.append(f"- {risk.risk}: {risk.mitigation}")

        outcome = d.expected_outcome
        lines += ["", "### Expected Outcomes"]
        lines.append(f"- Probability: {outcome.probability:.0%} over {outcome.time_to_realization}")
        for label, scenario in (
            ("Best", outcome.best_case),
            ("Base", outcome.base_case),
            ("Worst", outcome.worst_case),
        ):
            lines.append(f"- {label} case: {scenario.description} ({scenario.value:+,.2f})")

        if d.boundaries_checked:
            lines += ["", "### Boundary Checks"]
            for check in d.boundaries_checked:
                mark = "pass" if check.passed else "FAIL"
                lines.append(
                    f"- [{mark}] {check.boundary_id} ({check.kind.value}): {check.note or ''}"
                )

        tracking = d.outcome_tracking
        if tracking.final_outcome is not None:
            lines += ["", "### Outcome", f"- Classified as **{tracking.final_outcome.value}**"]
            lines += [f"- {lesson}" for lesson in tracking.lessons_learned]

        if educational:
            lines += ["", "### What This Means"]
            lines += [f"- {note}" for note in _EDUCATIONAL_NOTES]

        return "\n".join(lines) + "\n"

    def explain_agent(
        self,
        config: AgentConfigV1,
        state: str,
        memory: AgentMemoryV1,
        performance: Optional[AgentPerformanceV1],
    ) -> str:
        """Personality profile, current state, performance summary and what was learned."""
        p = config.personality
        long_term = memory.long_term
        lines = [
            f"## Agent: {config.name}",
            "",
            f"**Mandate:** {config.mandate.value}",
            f"**Current State:** {state}",
            f"**Autonomy Level:** {config.autonomy_level.value}",
            "",
            "### Personality Profile",
            f"- Risk Tolerance: {p.risk_tolerance:g}/100",
            f"- Patience: {p.patience:g}/100",
            f"- Decisiveness: {p.decisiveness:g}/100",
            f"- Contrarianism: {p.contrarianism:g}/100",
            f"- Adaptability: {p.adaptability:g}/100",
        ]
        for bias in p.known_biases:
            lines.append(f"- Known bias: {bias.bias} (mitigation: {bias.mitigation or 'none'})")

        lines += ["", "### Performance Summary"]
        if performance is not None:
            lines += [
                f"- Total Decisions: {performance.total_decisions}",
                f"- Executed: {performance.executed_decisions}",
                f"- Win Rate: {performance.win_rate * 100:.1f}%",
                f"- Total Return: {performance.total_return:+,.2f}",
                f"- Learning Score: {performance.learning_score:g}",
                f"- Adaptation Score: {performance.adaptation_score:g}",
            ]
        else:
            lines.append("- Not computed yet")

        lines += [
            "",
            "### What I've Learned",
            f"- Positive patterns discovered: {len(long_term.success_patterns)}",
            f"- Negative patterns to avoid: {len(long_term.failure_patterns)}",
            f"- Regimes studied: {len(long_term.regime_memory)}",
            f"- Assets traded: {len(long_term.asset_memory)}",
        ]
        return "\n".join(lines) + "\n"
