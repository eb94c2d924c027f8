"""Data models for DealTriage."""

from dealtriage.models.evaluation import (
    EvaluationHistoryItem,
    EvaluationHistoryPage,
    EvaluationOutcome,
    EvaluationSummary,
    EvaluationUpdate,
    EvaluationUpdateResult,
    LeadMetrics,
    ProviderErrorRecord,
    ProviderField,
    ProviderSnapshot,
    TriggerSource,
)
from dealtriage.models.ingest import (
    ConsolidationSummary,
    IngestLeadRequest,
    IngestResult,
)
from dealtriage.models.lead import (
    EvaluationTier,
    Lead,
    LeadQueueItem,
    LeadStatus,
    Pagination,
    Priority,
    QueueCounts,
    QueuePage,
    QueueType,
)
from dealtriage.models.metadata import (
    ConsolidationMetadata,
    EnrichmentMetadata,
    GenericMetadata,
    LeadMetadata,
    parse_metadata,
)
from dealtriage.models.portfolio import (
    AssetReport,
    AssetSummary,
    CashFlowReport,
    CashFlowSummary,
    ExpenseBreakdown,
    PropertyAssets,
    PropertyCashFlow,
    ReportError,
)
from dealtriage.models.property import (
    OPERATIONAL_STATUSES,
    CapitalCosts,
    FlipScoreBreakdown,
    HoldScoreBreakdown,
    InvestmentAnalysis,
    LegacyScoreBreakdown,
    MonthlyExpenses,
    Property,
    PropertyMetrics,
    PropertyStatus,
    ScoringVariant,
)
from dealtriage.models.valuation import (
    ArvValidationResult,
    ComparableSale,
    CompQuality,
    ConfidenceLevel,
    DeviationSeverity,
    ValuationEstimate,
    ValuationKind,
    ValuationSource,
)

__all__ = [
    "OPERATIONAL_STATUSES",
    "ArvValidationResult",
    "AssetReport",
    "AssetSummary",
    "CapitalCosts",
    "CashFlowReport",
    "CashFlowSummary",
    "ComparableSale",
    "CompQuality",
    "ConfidenceLevel",
    "ConsolidationMetadata",
    "ConsolidationSummary",
    "DeviationSeverity",
    "EnrichmentMetadata",
    "EvaluationHistoryItem",
    "EvaluationHistoryPage",
    "EvaluationOutcome",
    "EvaluationSummary",
    "EvaluationUpdate",
    "EvaluationUpdateResult",
    "EvaluationTier",
    "ExpenseBreakdown",
    "FlipScoreBreakdown",
    "GenericMetadata",
    "HoldScoreBreakdown",
    "IngestLeadRequest",
    "IngestResult",
    "InvestmentAnalysis",
    "Lead",
    "LeadMetadata",
    "LeadMetrics",
    "LeadQueueItem",
    "LeadStatus",
    "LegacyScoreBreakdown",
    "MonthlyExpenses",
    "Pagination",
    "Priority",
    "Property",
    "PropertyAssets",
    "PropertyCashFlow",
    "PropertyMetrics",
    "PropertyStatus",
    "ProviderErrorRecord",
    "ProviderField",
    "ProviderSnapshot",
    "QueueCounts",
    "QueuePage",
    "QueueType",
    "ReportError",
    "ScoringVariant",
    "TriggerSource",
    "ValuationEstimate",
    "ValuationKind",
    "ValuationSource",
    "parse_metadata",
]
