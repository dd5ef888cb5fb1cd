"""
Decision formulator.

Turns a ranked recommendation into a complete decision record: a sized
action, weighted reasoning, rejected alternatives, risks with mitigations
and a best/base/worst expected outcome. Boundary checks and autonomy gating
happen afterwards, in the cycle.
"""

import logging
from datetime import datetime
from typing import List, Optional

from capital_agent.schemas.agent_config import AgentConfigV1, AgentMandate
from capital_agent.schemas.decision import (
    AgentDecisionV1,
    AlternativeV1,
    ConfidenceLevel,
    DecisionType,
    EntryAction,
    ExitAction,
    ExpectedOutcomeV1,
    ReasoningFactorV1,
    ReasoningV1,
    ReduceExposureAction,
    RiskMitigationV1,
    ScenarioV1,
)
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.schemas.signal import (
    AnalysisResultV1,
    RecommendationKind,
    RecommendationV1,
    SignalDirection,
)
from capital_agent.utils.helpers import Clock, clamp, generate_id

logger = logging.getLogger(__name__)

REDUCTION_PERCENT = 50.0
REDUCE_EXPECTED_RETURN = 0.01
MIN_STOP = 0.01
BEST_CASE_MULTIPLE = 2.5

_MANDATE_ALIGNMENT = {
    AgentMandate.AGGRESSIVE_GROWTH: "pursuing high-conviction opportunities",
    AgentMandate.INCOME_GENERATION: "generating yield",
    AgentMandate.CAPITAL_PRESERVATION: "taking measured risk",
}

_REALIZATION = {
    "M": "within hours",
    "H": "within a day",
    "D": "1-3 days",
    "W": "1-2 weeks",
}


def map_confidence(score: float) -> ConfidenceLevel:
    """
    Map a numeric confidence score to its category.

    Example:
        >>> map_confidence(92).value, map_confidence(80).value, map_confidence(10).value
        ('very_high', 'high', 'very_low')
    """
    if score >= 90:
        return ConfidenceLevel.VERY_HIGH
    if score >= 75:
        return ConfidenceLevel.HIGH
    if score >= 50:
        return ConfidenceLevel.MEDIUM
    if score >= 25:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.VERY_LOW


def infer_decision_type(action: str) -> DecisionType:
    """Infer the decision type from a recommendation action label."""
    action = action.lower()
    if "long" in action or "buy" in action:
        return DecisionType.POSITION_ENTRY
    if "short" in action or "sell" in action:
        return DecisionType.POSITION_EXIT
    if "reduce" in action:
        return DecisionType.RISK_REDUCTION
    if "rebalance" in action:
        return DecisionType.REBALANCE
    if "hedge" in action:
        return DecisionType.HEDGE_ACTION
    return DecisionType.ALLOCATION_CHANGE


def time_to_realization(timeframe: str) -> str:
    return _REALIZATION.get(timeframe.strip().upper()[-1:], timeframe)


class DecisionFormulator:
    """Builds decision records from recommendations."""

    def __init__(self, settings: EngineSettingsV1, clock: Optional[Clock] = None):
        self.settings = settings
        self._clock = clock or datetime.now

    def position_size_pct(self, config: AgentConfigV1) -> float:
        """Percent of equity to commit: the per-decision cap scaled by risk tolerance."""
        scale = 0.5 + config.personality.risk_tolerance / 200
        return clamp(config.max_capital_per_decision_pct * scale, 0.0, 100.0)

    def formulate(
        self,
        config: AgentConfigV1,
        recommendation: RecommendationV1,
        analysis: AnalysisResultV1,
        portfolio: PortfolioStateV1,
    ) -> Optional[AgentDecisionV1]:
        """
        Formulate a decision for one recommendation.

        Args:
            config: Agent configuration
            recommendation: Recommendation to act on
            analysis: Full analysis of this cycle (quotes, risks, regime)
            portfolio: Live portfolio snapshot

        Returns:
            A pending decision, or None when the recommendation cannot be
            expressed as a trade (nothing to sell, no equity)
        """
        equity = portfolio.equity
        if equity <= 0:
            logger.debug(f"{config.agent_id}: no equity; skipping '{recommendation.action}'")
            return None

        size_pct = self.position_size_pct(config)
        sized_amount = equity * size_pct / 100

        if recommendation.kind == RecommendationKind.REDUCE_EXPOSURE:
            built = self._reduce_exposure(recommendation, portfolio)
        elif recommendation.signal is None:
            logger.warning(f"Opportunity recommendation without signal: {recommendation.action}")
            return None
        elif recommendation.signal.direction == SignalDirection.SHORT:
            built = self._exit(recommendation, portfolio, sized_amount)
        else:
            built = self._entry(recommendation, analysis, sized_amount, equity)

        if built is None:
            return None
        action, expected_return, stop, timeframe = built

        amount = action.amount
        base = amount * expected_return
        outcome = ExpectedOutcomeV1(
            probability=clamp(recommendation.priority / 100, 0.0, 1.0),
            best_case=ScenarioV1(
                description="Target reached quickly", value=base * BEST_CASE_MULTIPLE
            ),
            base_case=ScenarioV1(description="Gradual move toward target", value=base),
            worst_case=ScenarioV1(description="Stop loss triggered", value=-amount * stop),
            time_to_realization=time_to_realization(timeframe),
        )

        return AgentDecisionV1(
            decision_id=generate_id("dec"),
            agent_id=config.agent_id,
            timestamp=self._clock(),
            decision_type=infer_decision_type(recommendation.action),
            confidence=map_confidence(recommendation.priority),
            confidence_score=clamp(recommendation.priority, 0.0, 100.0),
            action=action,
            reasoning=self._reasoning(config, recommendation, analysis, stop, size_pct),
            expected_outcome=outcome,
            regime=analysis.regime,
            source_signal_id=recommendation.signal.signal_id if recommendation.signal else None,
        )

    # ------------------------------------------------------------------
    # Action builders: (action, expected return, stop fraction, timeframe)
    # ------------------------------------------------------------------

    def _entry(self, rec, analysis, amount, equity):
        signal = rec.signal
        stop = max(signal.expected_risk, MIN_STOP)
        quote = analysis.quotes.get(signal.asset)
        price = quote.price if quote else None
        take_profit = price * (1 + signal.expected_return * BEST_CASE_MULTIPLE) if price else None
        action = EntryAction(
            description=rec.reasoning,
            asset=signal.asset,
            amount=amount,
            amount_percent=amount / equity * 100,
            target_price=price * (1 + signal.expected_return) if price else None,
            stop_loss=price * (1 - stop) if price else None,
            take_profit=take_profit,
            timeframe=signal.timeframe,
        )
        return action, signal.expected_return, stop, signal.timeframe

    def _exit(self, rec, portfolio, amount):
        signal = rec.signal
        held = portfolio.position_value(signal.asset)
        if held <= 0:
            logger.debug(f"No {signal.asset} position to exit; skipping")
            return None
        amount = min(amount, held)
        action = ExitAction(
            description=rec.reasoning,
            asset=signal.asset,
            amount=amount,
            amount_percent=amount / portfolio.equity * 100,
            timeframe=signal.timeframe,
        )
        return action, signal.expected_return, max(signal.expected_risk, MIN_STOP), signal.timeframe

    def _reduce_exposure(self, rec, portfolio):
        largest = portfolio.largest_position()
        if largest is None or largest.value <= 0:
            logger.debug("Reduce-exposure recommendation with no open positions; skipping")
            return None
        amount = largest.value * REDUCTION_PERCENT / 100
        action = ReduceExposureAction(
            description=rec.reasoning,
            asset=largest.symbol,
            amount=amount,
            amount_percent=amount / portfolio.equity * 100,
            reduction_percent=REDUCTION_PERCENT,
            timeframe="1D",
        )
        return action, REDUCE_EXPECTED_RETURN, MIN_STOP, "1D"

    def _reasoning(
        self,
        config: AgentConfigV1,
        rec: RecommendationV1,
        analysis: AnalysisResultV1,
        stop: float,
        size_pct: float,
    ) -> ReasoningV1:
        if rec.signal is not None:
            strength = (
                f"{rec.signal.kind.value} signal, strength {rec.signal.strength:g}, "
                f"confidence {rec.signal.confidence:g}% ({rec.signal.source})"
            )
        else:
            strength = f"Risk response at priority {rec.priority:g}"

        if analysis.risks:
            top = max(analysis.risks, key=lambda r: r.severity)
            risk_text = (
                f"{len(analysis.risks)} active risk(s); "
                f"top: {top.risk_type} ({top.severity:g})"
            )
        else:
            risk_text = "No elevated risks detected"

        aim = _MANDATE_ALIGNMENT.get(config.mandate, "following the investment policy")
        mandate = config.mandate.value
        if config.mandate == AgentMandate.CUSTOM:
            mandate = config.custom_mandate
        alignment = f"This action aligns with the {mandate} mandate by {aim}"

        risks: List[RiskMitigationV1] = [
            RiskMitigationV1(risk="market_reversal", mitigation=f"Stop loss at {stop * 100:.1f}%"),
            RiskMitigationV1(
                risk="execution_slippage",
                mitigation=f"Slippage budget of {self.settings.slippage_rate * 100:.2f}%",
            ),
        ]
        for risk in analysis.risks:
            risks.append(
                RiskMitigationV1(
                    risk=risk.risk_type,
                    mitigation=f"Position capped at {size_pct:.2f}% of equity",
                    severity=risk.severity,
                )
            )

        return ReasoningV1(
            summary=rec.reasoning,
            factors=[
                ReasoningFactorV1(factor="opportunity_strength", weight=0.4, contribution=strength),
                ReasoningFactorV1(factor="risk_assessment", weight=0.3, contribution=risk_text),
                ReasoningFactorV1(
                    factor="mandate_alignment",
                    weight=0.3,
                    contribution=f"Aligned with {mandate} mandate",
                ),
            ],
            alternatives=[
                AlternativeV1(action="wait", reason_rejected="Opportunity may expire"),
                AlternativeV1(
                    action="larger_position",
                    reason_rejected=(
                        f"Exceeds {config.max_capital_per_decision_pct:g}% per-decision cap"
                    ),
                ),
            ],
            risks=risks,
            alignment_with_mandate=alignment,
        )
