"""Tiered evaluation runs.

A run calls every provider allowed in its tier concurrently, turns their
results into valuation estimates, validates the ARV, and computes the
lead's MAO, spread and score. A failed provider never fails the run: its
error is recorded and the fields it would have supplied are reported as
missing.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..analysis.calculator import MetricCalculator
from ..analysis.prioritizer import estimate_lead_score, score_from_spread
from ..config import Settings
from ..errors import ProviderError, ProviderTimeoutError
from ..models.evaluation import (
    EvaluationHistoryItem,
    EvaluationOutcome,
    EvaluationSummary,
    ProviderErrorRecord,
    ProviderField,
    ProviderSnapshot,
    TriggerSource,
)
from ..models.lead import EvaluationTier, Lead
from ..models.valuation import (
    ComparableSale,
    ValuationEstimate,
    ValuationKind,
    ValuationSource,
)
from ..valuation.confidence import ValuationLedger
from ..valuation.validator import ValuationValidator
from .providers import ProviderResult, ValuationProvider

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = {
    ProviderField.ARV: ValuationKind.ARV,
    ProviderField.REHAB: ValuationKind.REHAB,
    ProviderField.RENT: ValuationKind.RENT,
}


class EvaluationRunner:
    """Run quick or full evaluations for leads.

    Example:
        runner = EvaluationRunner([ai_arv, ai_rehab, rentcast_comps])

        outcome = await runner.run(lead, EvaluationTier.QUICK)
        print(outcome.summary.mao, outcome.history.errors)
    """

    def __init__(
        self,
        providers: Iterable[ValuationProvider] = (),
        calculator: Optional[MetricCalculator] = None,
        validator: Optional[ValuationValidator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.providers = list(providers)
        self.calc = calculator or MetricCalculator(self.settings)
        self.validator = validator or ValuationValidator(self.settings)

    def providers_for(self, tier: EvaluationTier) -> list[ValuationProvider]:
        """Providers allowed in a tier. Verified providers need the full tier."""
        return [
            p
            for p in self.providers
            if p.is_available() and (tier == EvaluationTier.FULL or not p.verified)
        ]

    async def _call(
        self,
        provider: ValuationProvider,
        lead: Lead,
    ) -> tuple[Optional[ProviderResult], ProviderSnapshot]:
        start = time.perf_counter()
        result: Optional[ProviderResult] = None
        error: Optional[str] = None
        timeout = self.settings.provider_timeout_seconds
        try:
            result = await asyncio.wait_for(provider.estimate(lead), timeout=timeout)
        except asyncio.TimeoutError:
            error = str(ProviderTimeoutError(provider.name, timeout))
        except ProviderError as e:
            error = str(e)
        except Exception as e:
            logger.exception(f"Provider {provider.name} crashed for lead {lead.id}")
            error = f"[{provider.name}] unexpected error: {e}"
        duration_ms = int((time.perf_counter() - start) * 1000)

        if error:
            logger.warning(f"Provider failed for lead {lead.id}: {error}")

        snapshot = ProviderSnapshot(
            provider_name=provider.name,
            field=provider.field,
            duration_ms=duration_ms,
            error=error,
        )
        if result is not None:
            parsed = result.parsed or result.model_dump(
                mode="json", exclude={"prompt", "raw_response", "parsed"}
            )
            snapshot = snapshot.model_copy(
                update={
                    "prompt": result.prompt,
                    "raw_response": result.raw_response,
                    "parsed_result": parsed,
                    "cost": result.cost,
                }
            )
        return result, snapshot

    def summarize(
        self,
        lead: Lead,
        arv: Optional[float],
        rehab: Optional[float],
        tier: EvaluationTier,
        missing: Optional[list[str]] = None,
    ) -> EvaluationSummary:
        """MAO, spread and lead score from resolved ARV and rehab.

        Without an ARV the score falls back to the listing-price heuristic
        and no MAO is computed.
        """
        missing = missing or []
        if arv is None:
            heuristic = estimate_lead_score(
                lead.listing_price,
                lead.square_footage,
                self.settings.static_price_per_sqft,
            )
            return EvaluationSummary(
                score=heuristic or None,
                tier=tier,
                missing=missing,
            )

        mao = self.calc.mao(arv, rehab or 0)
        spread = self.calc.spread_percent(lead.listing_price, mao)
        disqualified = mao <= 0
        return EvaluationSummary(
            score=score_from_spread(spread),
            mao=mao,
            mao_spread_percent=spread,
            is_disqualified=disqualified,
            disqualify_reason="MAO is not positive" if disqualified else None,
            tier=tier,
            missing=missing,
        )

    async def run(
        self,
        lead: Lead,
        tier: EvaluationTier = EvaluationTier.QUICK,
        trigger: TriggerSource = TriggerSource.MANUAL,
        prior_estimates: Iterable[ValuationEstimate] = (),
        correlation_id: Optional[str] = None,
    ) -> EvaluationOutcome:
        """Evaluate a lead.

        Args:
            lead: Lead to evaluate
            tier: QUICK (AI only) or FULL (adds verified providers)
            trigger: What started the run, recorded in history
            prior_estimates: Estimates already on file (manual overrides win)
            correlation_id: Optional id tying this run to a request

        Returns:
            EvaluationOutcome with new estimates, summary and history item
        """
        started = time.perf_counter()
        providers = self.providers_for(tier)
        logger.info(
            f"Evaluating lead {lead.id} ({tier.value}, {trigger.value}) "
            f"with {len(providers)} provider(s)"
        )

        calls = await asyncio.gather(*(self._call(p, lead) for p in providers))

        estimates: list[ValuationEstimate] = []
        comparables: list[ComparableSale] = []
        neighborhood_grade: Optional[str] = None
        snapshots: list[ProviderSnapshot] = []
        errors: list[ProviderErrorRecord] = []

        for provider, (result, snapshot) in zip(providers, calls):
            snapshots.append(snapshot)
            if snapshot.error:
                errors.append(ProviderErrorRecord(provider=provider.name, error=snapshot.error))
            if result is None:
                continue

            source = ValuationSource.VERIFIED if provider.verified else ValuationSource.AI
            comparables.extend(
                comp.model_copy(update={"source": source}) for comp in result.comparables
            )
            if provider.field in NUMERIC_FIELDS and result.value is not None:
                estimates.append(
                    ValuationEstimate(
                        lead_id=lead.id,
                        kind=NUMERIC_FIELDS[provider.field],
                        value=result.value,
                        source=source,
                        confidence_level=result.confidence_level,
                        confidence_percentage=result.confidence_percentage,
                        note=result.note,
                        raw_prompt=result.prompt,
                        raw_response=result.raw_response,
                        provider=provider.name,
                    )
                )
            elif provider.field == ProviderField.NEIGHBORHOOD and result.text:
                neighborhood_grade = result.text

        as_of = datetime.now(timezone.utc).date()
        validated: list[ValuationEstimate] = []
        arv_validation = None
        for estimate in estimates:
            if estimate.kind == ValuationKind.ARV and estimate.source == ValuationSource.AI:
                estimate = self.validator.validate_estimate(
                    estimate,
                    verified_benchmark=lead.verified_market_value,
                    square_footage=lead.square_footage,
                    comparables=comparables,
                    as_of=as_of,
                )
                arv_validation = estimate.validation
            validated.append(estimate)

        ledger = ValuationLedger(lead.id, prior_estimates)
        for estimate in validated:
            ledger.record(estimate)

        missing = [kind.value for kind in ValuationKind if ledger.current(kind) is None]
        summary = self.summarize(
            lead,
            ledger.value(ValuationKind.ARV),
            ledger.value(ValuationKind.REHAB),
            tier,
            missing,
        )

        duration_ms = int((time.perf_counter() - started) * 1000)
        history = EvaluationHistoryItem(
            lead_id=lead.id,
            tier=tier,
            trigger_source=trigger,
            correlation_id=correlation_id,
            total_cost=sum(s.cost for s in snapshots),
            duration_ms=duration_ms,
            snapshots=snapshots,
            errors=errors,
            summary=summary,
        )
        logger.info(
            f"Lead {lead.id} evaluated: score={summary.score}, mao={summary.mao}, "
            f"{len(errors)} provider error(s), {duration_ms}ms"
        )
        return EvaluationOutcome(
            lead_id=lead.id,
            tier=tier,
            estimates=validated,
            comparables=arv_validation.comparables if arv_validation else comparables,
            arv_validation=arv_validation,
            neighborhood_grade=neighborhood_grade,
            summary=summary,
            history=history,
        )
