from __future__ import annotations

from typing import Optional, Sequence

from clinassist.core.config import settings
from clinassist.core.exceptions import AllProvidersUnavailable
from clinassist.schemas.findings import ExtractionResult, SafetyFlag
from clinassist.schemas.requests import (
    ChatTurn,
    ClinicalRequest,
    ClinicalScenario,
    DrugList,
    RequestKind,
    SymptomSet,
)
from clinassist.schemas.results import ClinicalResult, Provenance, ResultStatus
from clinassist.services.medical_safety import medication_flags, screen_input
from clinassist.services.prompt_compiler import compile_prompt
from clinassist.services.provider_router import ProviderRouter
from clinassist.services.response_extractor import extract
from clinassist.services.risk_aggregator import (
    EMERGENCY_ASSESSMENT,
    aggregate,
    build_guidance,
    clinical_recommendations,
    summarize_risk,
)
from clinassist.utils.logger import logger


DEGRADED_REPLY = (
    "I'm experiencing technical difficulties right now. Please try again in a moment, "
    "or consult with a healthcare professional for immediate medical assistance."
)

DEGRADED_QUESTIONS = (
    "Can you help me understand these symptoms?",
    "What should I do if this is urgent?",
    "When should I contact a doctor?",
)

DEFAULT_QUESTIONS = (
    "What additional symptoms should I look for?",
    "When should the patient seek immediate medical attention?",
    "What lifestyle modifications might be helpful?",
)

DRUG_DISCLAIMER_PREFIX = (
    "This AI-generated analysis should be verified by a clinical pharmacist. "
    "Always consult healthcare professionals for medication management decisions. "
)

INCOMPLETE_EXTRACTION_WARNING = (
    "The AI response could not be fully structured; review the full text before acting on it."
)

EMERGENCY_GUIDANCE = {
    RequestKind.DIFFERENTIAL_DIAGNOSIS: "🚨 SEEK IMMEDIATE MEDICAL ATTENTION 🚨",
    RequestKind.CLINICAL_DECISION: "🚨 IMMEDIATE EMERGENCY INTERVENTION REQUIRED 🚨",
    RequestKind.DRUG_INTERACTION: "🚨 URGENT: Seek emergency care before any medication review.",
    RequestKind.CHAT: "🚨 Call emergency services immediately.",
}


class ClinicalAiService:
    """
    Runs one request through safety screening, prompt compilation,
    provider routing, extraction and risk aggregation.

    Holds no per-request state, so one instance can serve concurrent callers.
    History comes in and results go out; persistence is the caller's job.
    """

    def __init__(
        self,
        router: Optional[ProviderRouter] = None,
        *,
        emergency_keywords: Optional[Sequence[str]] = None,
        emergency_response: Optional[str] = None,
        disclaimer: Optional[str] = None,
        history_window: Optional[int] = None,
    ):
        self.router = router or ProviderRouter.from_settings()
        self.emergency_keywords = tuple(
            settings.emergency_keywords if emergency_keywords is None else emergency_keywords
        )
        self.emergency_response = emergency_response or settings.EMERGENCY_RESPONSE
        self.disclaimer = disclaimer or settings.DISCLAIMER
        self.history_window = settings.HISTORY_WINDOW if history_window is None else history_window

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def respond_to_chat(self, request: ChatTurn, history: Sequence[dict] | None = None) -> ClinicalResult:
        return self.run(request, history)

    def analyze_drug_interactions(self, request: DrugList) -> ClinicalResult:
        return self.run(request)

    def generate_differential_diagnosis(self, request: SymptomSet) -> ClinicalResult:
        return self.run(request)

    def provide_clinical_decision_support(self, request: ClinicalScenario) -> ClinicalResult:
        return self.run(request)

    def run(self, request: ClinicalRequest, history: Sequence[dict] | None = None) -> ClinicalResult:
        flags = medication_flags(request)

        emergency = screen_input(request, self.emergency_keywords)
        if emergency is not None:
            logger.warning(f"Emergency short-circuit for {request.kind.value}: {emergency.detail}")
            return self._emergency_result(request, [emergency, *flags])

        prompt = compile_prompt(request, history, history_window=self.history_window)

        try:
            response = self.router.generate(prompt)
        except AllProvidersUnavailable as e:
            logger.error(f"Returning degraded {request.kind.value} result: {e}")
            return self._degraded_result(request, flags)

        extraction = extract(response.text, request.kind)
        assessment = aggregate(
            extraction.findings,
            flags,
            complexity_score=request.complexity_score(),
        )

        warnings = [f.detail for f in flags]
        if extraction.is_empty and request.kind != RequestKind.CHAT:
            warnings.append(INCOMPLETE_EXTRACTION_WARNING)

        return ClinicalResult(
            kind=request.kind,
            status=ResultStatus.COMPLETED,
            reply=response.text,
            extraction=extraction,
            risk=assessment,
            safety_flags=tuple(flags),
            warnings=tuple(warnings),
            disclaimer=self._disclaimer_for(request.kind),
            provenance=Provenance(
                provider=response.provider,
                model=response.model,
                elapsed_ms=response.elapsed_ms,
                token_estimate=response.token_estimate,
                fallback_used=response.provider != self.router.primary_id,
            ),
            suggested_questions=self._suggested_questions(request.kind, extraction),
            recommendations=self._recommendations(request.kind, extraction),
            risk_summary=summarize_risk(request.kind, extraction, assessment),
            guidance=build_guidance(request.kind, extraction, assessment),
        )

    # ------------------------------------------------------------------
    # Result builders
    # ------------------------------------------------------------------

    def _disclaimer_for(self, kind: RequestKind) -> str:
        if kind == RequestKind.DRUG_INTERACTION:
            return DRUG_DISCLAIMER_PREFIX + self.disclaimer
        return self.disclaimer

    def _suggested_questions(self, kind: RequestKind, extraction: ExtractionResult) -> tuple[str, ...]:
        if kind != RequestKind.CHAT:
            return ()
        return extraction.suggested_questions or DEFAULT_QUESTIONS

    def _recommendations(self, kind: RequestKind, extraction: ExtractionResult) -> tuple[str, ...]:
        if kind == RequestKind.DRUG_INTERACTION:
            return clinical_recommendations(extraction)
        if kind == RequestKind.CLINICAL_DECISION:
            return extraction.implementation
        if kind == RequestKind.DIFFERENTIAL_DIAGNOSIS:
            return extraction.recommended_tests
        return extraction.next_steps

    def _emergency_result(self, request: ClinicalRequest, flags: list[SafetyFlag]) -> ClinicalResult:
        warnings = [f.detail for f in flags]
        if request.kind == RequestKind.DIFFERENTIAL_DIAGNOSIS:
            warnings.append("Emergency symptoms present")

        return ClinicalResult(
            kind=request.kind,
            status=ResultStatus.EMERGENCY,
            reply=self.emergency_response,
            risk=EMERGENCY_ASSESSMENT,
            safety_flags=tuple(flags),
            warnings=tuple(warnings),
            disclaimer=self._disclaimer_for(request.kind),
            risk_summary="Emergency presentation detected; AI analysis was not performed.",
            guidance=EMERGENCY_GUIDANCE.get(request.kind, ""),
        )

    def _degraded_result(self, request: ClinicalRequest, flags: list[SafetyFlag]) -> ClinicalResult:
        extraction = ExtractionResult()
        assessment = aggregate((), flags)

        return ClinicalResult(
            kind=request.kind,
            status=ResultStatus.DEGRADED,
            reply=DEGRADED_REPLY,
            extraction=extraction,
            risk=assessment,
            safety_flags=tuple(flags),
            warnings=tuple(f.detail for f in flags),
            disclaimer=self._disclaimer_for(request.kind),
            suggested_questions=DEGRADED_QUESTIONS,
            recommendations=self._recommendations(request.kind, extraction),
            risk_summary=summarize_risk(request.kind, extraction, assessment),
            guidance=build_guidance(request.kind, extraction, assessment),
        )
