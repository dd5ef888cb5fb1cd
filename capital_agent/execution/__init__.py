"""Execution adapters, paper trading and the execution coordinator."""

from capital_agent.execution.adapter import (
    AssetClass,
    ExecutionAdapter,
    ExecutionReportV1,
    InMemoryPortfolio,
    OrderRequestV1,
    PaperExecutionAdapter,
    PortfolioSource,
    infer_asset_class,
)
from capital_agent.execution.coordinator import ExecutionCoordinator, build_order

__all__ = [
    "AssetClass",
    "ExecutionAdapter",
    "ExecutionReportV1",
    "OrderRequestV1",
    "PortfolioSource",
    "InMemoryPortfolio",
    "PaperExecutionAdapter",
    "infer_asset_class",
    "ExecutionCoordinator",
    "build_order",
]
