"""Live portfolio state read by boundary evaluators and position sizing."""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from capital_agent.utils.helpers import safe_div


class PositionV1(BaseModel):
    """One open position."""

    symbol: str
    quantity: float = Field(..., ge=0)
    avg_price: float = Field(..., ge=0)
    last_price: float = Field(..., ge=0)
    sector: Optional[str] = None
    asset_class: str = "equity"

    @property
    def value(self) -> float:
        return self.quantity * self.last_price

    @property
    def unrealized_pnl(self) -> float:
        return (self.last_price - self.avg_price) * self.quantity


class PortfolioStateV1(BaseModel):
    """Snapshot of an agent's account."""

    cash: float = Field(..., description="Uninvested cash")
    positions: Dict[str, PositionV1] = Field(default_factory=dict)
    peak_equity: float = Field(default=0.0, ge=0, description="High-water mark of equity")

    @property
    def gross_exposure(self) -> float:
        return sum(p.value for p in self.positions.values())

    @property
    def equity(self) -> float:
        return self.cash + self.gross_exposure

    @property
    def leverage(self) -> float:
        return safe_div(self.gross_exposure, self.equity)

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown from peak equity, in percent."""
        peak = max(self.peak_equity, self.equity)
        return max(0.0, safe_div(peak - self.equity, peak) * 100)

    @property
    def cash_pct(self) -> float:
        return safe_div(self.cash, self.equity) * 100

    def position_value(self, symbol: str) -> float:
        position = self.positions.get(symbol.upper())
        return position.value if position else 0.0

    def sector_of(self, symbol: str) -> Optional[str]:
        position = self.positions.get(symbol.upper())
        return position.sector if position else None

    def sector_value(self, sector: str) -> float:
        return sum(p.value for p in self.positions.values() if p.sector == sector)

    def asset_class_value(self, asset_class: str) -> float:
        return sum(p.value for p in self.positions.values() if p.asset_class == asset_class)

    def largest_position(self) -> Optional[PositionV1]:
        if not self.positions:
            return None
        return max(self.positions.values(), key=lambda p: p.value)
