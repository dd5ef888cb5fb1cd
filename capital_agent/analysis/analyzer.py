"""
Opportunity and risk analyzer.

Turns a cycle's observations plus long-term memory into opportunity signals,
risk assessments and a ranked recommendation list.
"""

import logging
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

from capital_agent.schemas.agent_config import AgentConfigV1
from capital_agent.schemas.memory import AgentMemoryV1
from capital_agent.schemas.observation import (
    CorrelationPayload,
    ObservationCategory,
    ObservationV1,
    PricePayload,
    QuoteV1,
    RegimePayload,
    VolatilityPayload,
)
from capital_agent.schemas.portfolio import PortfolioStateV1
from capital_agent.schemas.settings import EngineSettingsV1
from capital_agent.schemas.signal import (
    AnalysisResultV1,
    OpportunitySignalV1,
    RecommendationKind,
    RecommendationV1,
    RiskAssessmentV1,
    SignalDirection,
    SignalKind,
)
from capital_agent.utils.helpers import Clock, generate_id, safe_div, timeframe_to_timedelta

logger = logging.getLogger(__name__)


class RegimeRule(NamedTuple):
    """Opportunity template for one regime."""

    kind: SignalKind
    direction: SignalDirection
    trend: str  # quote trend the rule needs
    strength: float
    confidence: float
    timeframe: str
    expected_return: float
    expected_risk: float


REGIME_RULES: Dict[str, RegimeRule] = {
    "bull_steady": RegimeRule(
        SignalKind.MOMENTUM, SignalDirection.LONG, "up", 65.0, 70.0, "1W", 0.02, 0.01
    ),
    "bull_volatile": RegimeRule(
        SignalKind.BREAKOUT, SignalDirection.LONG, "up", 60.0, 62.0, "1D", 0.03, 0.02
    ),
    "bear_steady": RegimeRule(
        SignalKind.MOMENTUM, SignalDirection.SHORT, "down", 60.0, 65.0, "1W", 0.02, 0.015
    ),
    "bear_volatile": RegimeRule(
        SignalKind.MEAN_REVERSION, SignalDirection.LONG, "down", 55.0, 58.0, "1D", 0.025, 0.02
    ),
    "range_bound": RegimeRule(
        SignalKind.MEAN_REVERSION, SignalDirection.LONG, "down", 55.0, 60.0, "1W", 0.015, 0.01
    ),
}

REDUCE_EXPOSURE_PRIORITY = 90.0


def _latest(
    observations: List[ObservationV1], category: ObservationCategory
) -> Optional[ObservationV1]:
    for obs in observations:
        if obs.category == category and not obs.is_empty:
            return obs
    return None


class OpportunityAnalyzer:
    """
    Regime-conditioned opportunity scanner and risk assessor.

    Example:
        >>> analyzer = OpportunityAnalyzer(EngineSettingsV1())
        >>> result = analyzer.analyze(config, observations, memory, portfolio)
        >>> [r.action for r in result.recommendations]
        ['long_SPY']
    """

    def __init__(self, settings: EngineSettingsV1, clock: Optional[Clock] = None):
        self.settings = settings
        self._clock = clock or datetime.now

    def analyze(
        self,
        config: AgentConfigV1,
        observations: List[ObservationV1],
        memory: AgentMemoryV1,
        portfolio: PortfolioStateV1,
    ) -> AnalysisResultV1:
        """
        Run the analyze phase.

        Args:
            config: Agent configuration
            observations: This cycle's observations
            memory: Snapshot of the agent's memory
            portfolio: Live portfolio snapshot

        Returns:
            Opportunities, risks and recommendations sorted by descending priority
        """
        regime_obs = _latest(observations, ObservationCategory.REGIME)
        regime = regime_obs.payload.current if regime_obs else None
        price_obs = _latest(observations, ObservationCategory.PRICE)
        quotes: Dict[str, QuoteV1] = {}
        if price_obs and isinstance(price_obs.payload, PricePayload):
            quotes = dict(price_obs.payload.quotes)

        opportunities = self.scan_opportunities(config, regime, quotes, memory)
        risks = self.assess_risks(config, observations, portfolio)
        recommendations = self.recommend(config, opportunities, risks)

        logger.debug(
            f"{config.agent_id}: regime={regime} opportunities={len(opportunities)} "
            f"risks={len(risks)} recommendations={len(recommendations)}"
        )
        return AnalysisResultV1(
            opportunities=opportunities,
            risks=risks,
            recommendations=recommendations,
            regime=regime,
            quotes=quotes,
        )

    def scan_opportunities(
        self,
        config: AgentConfigV1,
        regime: Optional[str],
        quotes: Dict[str, QuoteV1],
        memory: AgentMemoryV1,
    ) -> List[OpportunitySignalV1]:
        now = self._clock()
        signals: List[OpportunitySignalV1] = []

        rule = REGIME_RULES.get(regime or "")
        if rule is not None:
            for symbol in config.watchlist:
                quote = quotes.get(symbol)
                # Without a quote the regime alone decides
                if quote is not None and quote.trend != rule.trend:
                    continue
                signals.append(
                    OpportunitySignalV1(
                        signal_id=generate_id("opp"),
                        timestamp=now,
                        asset=symbol,
                        kind=rule.kind,
                        direction=rule.direction,
                        strength=rule.strength,
                        confidence=rule.confidence,
                        timeframe=rule.timeframe,
                        expected_return=rule.expected_return,
                        expected_risk=rule.expected_risk,
                        source=f"regime:{regime}",
                        expires_at=now + timeframe_to_timedelta(rule.timeframe),
                    )
                )

        for pattern in memory.long_term.success_patterns:
            if pattern.confidence <= self.settings.pattern_replay_confidence:
                continue
            signals.append(
                OpportunitySignalV1(
                    signal_id=generate_id("opp"),
                    timestamp=now,
                    asset=pattern.asset or config.watchlist[0],
                    kind=SignalKind.ALPHA,
                    direction=SignalDirection.LONG,
                    strength=pattern.confidence,
                    confidence=pattern.confidence,
                    timeframe="1D",
                    expected_return=pattern.avg_return,
                    expected_risk=abs(pattern.avg_return) * 0.5,
                    source=f"pattern:{pattern.pattern}",
                    expires_at=now + timeframe_to_timedelta("1D"),
                )
            )
        return signals

    def assess_risks(
        self,
        config: AgentConfigV1,
        observations: List[ObservationV1],
        portfolio: PortfolioStateV1,
    ) -> List[RiskAssessmentV1]:
        s = self.settings
        risks: List[RiskAssessmentV1] = []

        vol = _latest(observations, ObservationCategory.VOLATILITY)
        if vol and isinstance(vol.payload, VolatilityPayload) and vol.payload.vix > s.vix_threshold:
            excess = vol.payload.vix - s.vix_threshold
            severity = min(100.0, s.high_severity_threshold + 2 * excess)
            risks.append(
                RiskAssessmentV1(
                    risk_type="elevated_volatility",
                    severity=severity,
                    description=(
                        f"VIX at {vol.payload.vix:g} (above {s.vix_threshold:g}) "
                        "indicates elevated market stress"
                    ),
                )
            )

        corr = _latest(observations, ObservationCategory.CORRELATION)
        if (
            corr
            and isinstance(corr.payload, CorrelationPayload)
            and corr.payload.stock_bond > s.stock_bond_correlation_threshold
        ):
            risks.append(
                RiskAssessmentV1(
                    risk_type="correlation_breakdown",
                    severity=60.0,
                    description=(
                        "Stock-bond correlation turning positive reduces "
                        "diversification benefit"
                    ),
                )
            )

        regime = _latest(observations, ObservationCategory.REGIME)
        if (
            regime
            and isinstance(regime.payload, RegimePayload)
            and regime.payload.transition_probability > s.regime_transition_threshold
        ):
            nxt = regime.payload.potential_next_regime or "an unknown regime"
            risks.append(
                RiskAssessmentV1(
                    risk_type="regime_transition",
                    severity=regime.payload.transition_probability * 100,
                    description=f"Likely transition from {regime.payload.current} to {nxt}",
                )
            )

        drawdown = portfolio.drawdown_pct
        tolerance = config.max_drawdown_tolerance
        if drawdown >= 0.8 * tolerance:
            risks.append(
                RiskAssessmentV1(
                    risk_type="drawdown_pressure",
                    severity=min(100.0, safe_div(drawdown, tolerance) * 100),
                    description=f"Drawdown {drawdown:.1f}% approaching tolerance {tolerance:g}%",
                )
            )
        return risks

    def recommend(
        self,
        config: AgentConfigV1,
        opportunities: List[OpportunitySignalV1],
        risks: List[RiskAssessmentV1],
    ) -> List[RecommendationV1]:
        recommendations: List[RecommendationV1] = []

        for risk in risks:
            if risk.severity > self.settings.high_severity_threshold:
                recommendations.append(
                    RecommendationV1(
                        action="reduce_exposure",
                        kind=RecommendationKind.REDUCE_EXPOSURE,
                        priority=REDUCE_EXPOSURE_PRIORITY,
                        reasoning=f"High risk detected: {risk.description}",
                        risk=risk,
                    )
                )

        for opp in opportunities:
            if opp.confidence < config.min_confidence_to_act:
                continue
            recommendations.append(
                RecommendationV1(
                    action=f"{opp.direction.value}_{opp.asset}",
                    kind=RecommendationKind.OPPORTUNITY,
                    priority=opp.confidence,
                    reasoning=(
                        f"{opp.kind.value} opportunity in {opp.asset} "
                        f"with {opp.confidence:g}% confidence"
                    ),
                    signal=opp,
                )
            )

        recommendations.sort(key=lambda r: r.priority, reverse=True)
        return recommendations
