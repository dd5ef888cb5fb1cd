"""Deterministic observation source used by the CLI and tests."""

import logging
import threading
import time
from datetime import datetime
from typing import Dict, Optional, Tuple

from capital_agent.schemas.observation import (
    CorrelationPayload,
    EmptyPayload,
    ObservationCategory,
    ObservationPayload,
    ObservationV1,
    PricePayload,
    QuoteV1,
    RegimePayload,
    SentimentPayload,
    VolatilityPayload,
)
from capital_agent.utils.helpers import Clock

logger = logging.getLogger(__name__)

# (significance, actionability) per category
_SCORES: Dict[ObservationCategory, Tuple[float, float]] = {
    ObservationCategory.PRICE: (40.0, 30.0),
    ObservationCategory.VOLATILITY: (50.0, 40.0),
    ObservationCategory.SENTIMENT: (35.0, 25.0),
    ObservationCategory.REGIME: (70.0, 60.0),
    ObservationCategory.CORRELATION: (45.0, 35.0),
}


def _default_quotes() -> Dict[str, QuoteV1]:
    return {
        "SPY": QuoteV1(price=500.0, change_pct=0.5, trend="up"),
        "SPX": QuoteV1(price=5000.0, change_pct=0.5, trend="up"),
        "BTC-USD": QuoteV1(price=45000.0, change_pct=-1.2, trend="down"),
        "VIX": QuoteV1(price=18.0, change_pct=-0.3, trend="down"),
    }


class StaticObservationSource:
    """
    Observation source backed by a fixed, mutable market snapshot.

    Starts from a calm, steadily rising market (regime ``bull_steady``,
    VIX 18, negative stock/bond correlation). Tests and the CLI reshape the
    snapshot with ``set_payload``/``set_regime``/``set_quote`` and drift
    prices with ``advance``.

    Example:
        >>> source = StaticObservationSource()
        >>> obs = source.observe("agent_1", ObservationCategory.REGIME)
        >>> obs.payload.current
        'bull_steady'
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        latency_seconds: float = 0.0,
    ):
        self._clock = clock or datetime.now
        self.latency_seconds = latency_seconds
        self.call_count = 0
        self.lock = threading.Lock()
        self._quotes = _default_quotes()
        self._payloads: Dict[ObservationCategory, ObservationPayload] = {
            ObservationCategory.VOLATILITY: VolatilityPayload(
                vix=18.0,
                implied_vol=0.22,
                realized_vol=0.18,
                vol_of_vol=0.8,
                term_structure="contango",
            ),
            ObservationCategory.SENTIMENT: SentimentPayload(
                fear_greed=55.0,
                put_call_ratio=0.95,
                social_sentiment="neutral",
                news_flow="mixed",
            ),
            ObservationCategory.REGIME: RegimePayload(
                current="bull_steady",
                confidence=0.75,
                transition_probability=0.15,
                potential_next_regime="bull_volatile",
            ),
            ObservationCategory.CORRELATION: CorrelationPayload(
                stock_bond=-0.3,
                stock_crypto=0.6,
                dollar_equity=-0.4,
                breakdown_risk="low",
            ),
        }

    def observe(self, agent_id: str, category: ObservationCategory) -> ObservationV1:
        with self.lock:
            self.call_count += 1
        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)

        category = ObservationCategory(category)
        with self.lock:
            if category == ObservationCategory.PRICE:
                payload: ObservationPayload = PricePayload(
                    quotes={k: v.model_copy() for k, v in self._quotes.items()}
                )
            else:
                payload = self._payloads.get(category) or EmptyPayload(reason="not simulated")
                payload = payload.model_copy()

        significance, actionability = _SCORES.get(category, (0.0, 0.0))
        return ObservationV1(
            timestamp=self._clock(),
            category=category,
            payload=payload,
            significance=significance,
            actionability=actionability,
        )

    def set_payload(self, category: ObservationCategory, payload: ObservationPayload) -> None:
        with self.lock:
            self._payloads[ObservationCategory(category)] = payload

    def set_regime(self, regime: str, transition_probability: float = 0.15) -> None:
        with self.lock:
            current = self._payloads[ObservationCategory.REGIME]
            self._payloads[ObservationCategory.REGIME] = RegimePayload(
                current=regime,
                confidence=getattr(current, "confidence", 0.75),
                transition_probability=transition_probability,
            )

    def set_quote(self, symbol: str, quote: QuoteV1) -> None:
        with self.lock:
            self._quotes[symbol.upper()] = quote

    def price_of(self, symbol: str) -> Optional[float]:
        with self.lock:
            quote = self._quotes.get(symbol.upper())
        return quote.price if quote else None

    def prices(self) -> Dict[str, float]:
        with self.lock:
            return {k: v.price for k, v in self._quotes.items()}

    def advance(self, drift_pct: float) -> None:
        """Move every quote by ``drift_pct`` percent in its trend direction."""
        with self.lock:
            for symbol, quote in self._quotes.items():
                sign = {"up": 1.0, "down": -1.0}.get(quote.trend, 0.0)
                new_price = max(quote.price * (1 + sign * drift_pct / 100), 1e-9)
                self._quotes[symbol] = QuoteV1(
                    price=new_price, change_pct=sign * drift_pct, trend=quote.trend
                )
        logger.debug(f"Advanced static market by {drift_pct}%")
