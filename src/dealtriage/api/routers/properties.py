"""Property analysis and portfolio report API endpoints."""

import logging

from fastapi import APIRouter, Query, Request

from ...analysis.portfolio import PortfolioAggregator
from ...analysis.prioritizer import sort_properties
from ...analysis.scoring import ScoreEngine
from ...models.portfolio import AssetReport, CashFlowReport
from ...models.property import InvestmentAnalysis, Property, ScoringVariant

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyze", response_model=InvestmentAnalysis)
async def analyze_property(
    prop: Property,
    request: Request,
    variant: ScoringVariant = Query(ScoringVariant.DUAL),
):
    """Compute metrics, Hold/Flip scores and perfect-score targets for a property."""
    engine: ScoreEngine = request.app.state.score_engine
    return engine.analyze(prop, variant)


@router.post("/sort", response_model=list[Property])
async def sort_property_board(properties: list[Property]):
    """Order properties by status stage, then address."""
    return sort_properties(properties)


@router.post("/reports/cashflow", response_model=CashFlowReport)
async def cashflow_report(properties: list[Property], request: Request):
    """Current vs potential monthly cashflow of the operational properties."""
    aggregator: PortfolioAggregator = request.app.state.portfolio_aggregator
    report = aggregator.cashflow_report(properties)
    logger.info(
        f"Cashflow report: {report.summary.properties_count} of {len(properties)} properties"
    )
    return report


@router.post("/reports/assets", response_model=AssetReport)
async def asset_report(properties: list[Property], request: Request):
    """Value, loan balance and equity of the operational properties."""
    aggregator: PortfolioAggregator = request.app.state.portfolio_aggregator
    return aggregator.asset_report(properties)
