"""
Execution adapter contract, asset-class inference and the paper adapter.

The paper adapter fills market orders against the latest quote with a
fixed slippage and fee, and books the fill into an in-memory portfolio.
It is deterministic: same quotes and orders give the same fills.
"""

import logging
import re
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from capital_agent.schemas.portfolio import PortfolioStateV1, PositionV1
from capital_agent.utils.helpers import generate_id

logger = logging.getLogger(__name__)


class AssetClass(str, Enum):
    EQUITY = "equity"
    CRYPTO = "crypto"
    FOREX = "forex"
    OPTIONS = "options"
    FUTURES = "futures"
    COMMODITIES = "commodities"


_CRYPTO_PATTERN = re.compile(
    r"^(?:BTC|ETH|SOL|XRP|DOGE|ADA|DOT|LINK)(?:[-/]?(?:USD|USDT|USDC|EUR|BTC))?$"
)
_FX_CURRENCIES = ("EUR", "GBP", "JPY", "CHF", "AUD", "CAD", "NZD")
_OPTION_PATTERN = re.compile(r"\d{6}[CP]\d+")
_FUTURES_ROOTS = frozenset({"ES", "NQ", "CL", "GC", "SI", "ZB", "ZN"})


def infer_asset_class(symbol: str) -> AssetClass:
    """
    Infer the asset class from a symbol's shape.

    Example:
        >>> infer_asset_class("BTC-USD").value
        'crypto'
        >>> infer_asset_class("ETHE").value
        'equity'
        >>> infer_asset_class("EUR/USD").value
        'forex'
        >>> infer_asset_class("AAPL240119C00190000").value
        'options'
    """
    upper = symbol.upper()
    if _CRYPTO_PATTERN.match(upper):
        return AssetClass.CRYPTO
    if "/" in upper and any(ccy in upper for ccy in _FX_CURRENCIES):
        return AssetClass.FOREX
    if _OPTION_PATTERN.search(upper):
        return AssetClass.OPTIONS
    if upper in _FUTURES_ROOTS:
        return AssetClass.FUTURES
    return AssetClass.EQUITY


class OrderRequestV1(BaseModel):
    """Order handed to an execution adapter."""

    agent_id: str
    client_order_id: str = Field(..., description="'ACA-<decision id>'")
    symbol: str
    side: Literal["buy", "sell"]
    notional: float = Field(..., gt=0)
    order_type: Literal["market", "limit"] = "market"
    time_in_force: Literal["day", "gtc"] = "day"
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None
    asset_class: AssetClass


class ExecutionReportV1(BaseModel):
    """Adapter response."""

    success: bool
    order_id: Optional[str] = None
    filled_price: Optional[float] = None
    filled_notional: Optional[float] = None
    error: Optional[str] = None


class ExecutionAdapter(Protocol):
    """External effector. May block; always called without agent locks held."""

    def submit(self, order: OrderRequestV1) -> ExecutionReportV1:
        ...


class PortfolioSource(Protocol):
    """Live account state per agent."""

    def snapshot(self, agent_id: str) -> PortfolioStateV1:
        ...


class InMemoryPortfolio:
    """
    Thread-safe per-agent paper accounts.

    Example:
        >>> book = InMemoryPortfolio()
        >>> book.open_account("agent_1", cash=100_000)
        >>> book.snapshot("agent_1").equity
        100000.0
    """

    def __init__(self, sectors: Optional[Dict[str, str]] = None):
        self._accounts: Dict[str, PortfolioStateV1] = {}
        self._sectors = {k.upper(): v for k, v in (sectors or {}).items()}
        self.lock = threading.Lock()

    def open_account(self, agent_id: str, cash: float) -> None:
        with self.lock:
            self._accounts[agent_id] = PortfolioStateV1(cash=cash, peak_equity=cash)
        logger.info(f"Opened paper account for {agent_id} with cash {cash:,.2f}")

    def snapshot(self, agent_id: str) -> PortfolioStateV1:
        """Copy of the agent's account. Unknown agents have an empty account."""
        with self.lock:
            account = self._accounts.get(agent_id)
            if account is None:
                return PortfolioStateV1(cash=0.0)
            return account.model_copy(deep=True)

    def apply_fill(
        self,
        agent_id: str,
        symbol: str,
        side: str,
        quantity: float,
        price: float,
        fees: float,
    ) -> None:
        """
        Book a fill.

        Raises:
            ValueError: If the account is unknown, cash is insufficient, or
                there is no position to sell
        """
        symbol = symbol.upper()
        with self.lock:
            account = self._accounts.get(agent_id)
            if account is None:
                raise ValueError(f"No paper account for {agent_id}")

            notional = quantity * price
            position = account.positions.get(symbol)

            if side == "buy":
                if notional + fees > account.cash + 1e-9:
                    raise ValueError(
                        f"Insufficient cash: need {notional + fees:,.2f}, have {account.cash:,.2f}"
                    )
                account.cash -= notional + fees
                if position is None:
                    account.positions[symbol] = PositionV1(
                        symbol=symbol,
                        quantity=quantity,
                        avg_price=price,
                        last_price=price,
                        sector=self._sectors.get(symbol),
                        asset_class=infer_asset_class(symbol).value,
                    )
                else:
                    total = position.quantity + quantity
                    position.avg_price = (
                        position.avg_price * position.quantity + price * quantity
                    ) / total
                    position.quantity = total
                    position.last_price = price
            else:
                if position is None:
                    raise ValueError(f"Cannot sell {symbol}: no position held")
                # Oversized sells close the position
                quantity = min(quantity, position.quantity)
                account.cash += quantity * price - fees
                position.quantity = max(0.0, position.quantity - quantity)
                position.last_price = price
                if position.quantity <= 1e-9:
                    del account.positions[symbol]

            account.peak_equity = max(account.peak_equity, account.equity)

    def update_prices(self, prices: Dict[str, float]) -> None:
        """Mark every account's positions to the given prices."""
        upper = {k.upper(): v for k, v in prices.items()}
        with self.lock:
            for account in self._accounts.values():
                for symbol, position in account.positions.items():
                    if symbol in upper:
                        position.last_price = upper[symbol]
                account.peak_equity = max(account.peak_equity, account.equity)


class PaperExecutionAdapter:
    """
    Deterministic paper adapter.

    Buys fill at ``price * (1 + slippage)``, sells at ``price * (1 - slippage)``.
    Notional is converted to quantity at the fill price.

    Example:
        >>> adapter = PaperExecutionAdapter(book, price_lookup=source.price_of)
        >>> report = adapter.submit(order)
        >>> report.success
        True
    """

    def __init__(
        self,
        portfolio: InMemoryPortfolio,
        price_lookup: Callable[[str], Optional[float]],
        slippage_rate: float = 0.001,
        fee_rate: float = 0.001,
    ):
        self.portfolio = portfolio
        self.price_lookup = price_lookup
        self.slippage_rate = slippage_rate
        self.fee_rate = fee_rate
        self.call_count = 0
        self._lock = threading.Lock()

    def submit(self, order: OrderRequestV1) -> ExecutionReportV1:
        with self._lock:
            self.call_count += 1

        price = self.price_lookup(order.symbol)
        if price is None or price <= 0:
            return ExecutionReportV1(success=False, error=f"No quote for {order.symbol}")

        if order.side == "buy":
            fill_price = price * (1 + self.slippage_rate)
        else:
            fill_price = price * (1 - self.slippage_rate)

        quantity = order.notional / fill_price
        fees = order.notional * self.fee_rate
        try:
            self.portfolio.apply_fill(
                order.agent_id, order.symbol, order.side, quantity, fill_price, fees
            )
        except ValueError as e:
            logger.warning(f"Paper order {order.client_order_id} rejected: {e}")
            return ExecutionReportV1(success=False, error=str(e))

        order_id = generate_id("paper")
        logger.debug(
            f"Paper fill {order_id}: {order.side} {quantity:.6g} {order.symbol} @ {fill_price:.4f}"
        )
        return ExecutionReportV1(
            success=True,
            order_id=order_id,
            filled_price=fill_price,
            filled_notional=order.notional,
        )
