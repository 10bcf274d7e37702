from typing import Iterable, Sequence

from clinassist.schemas.findings import (
    ConfidenceLevel,
    ExtractionResult,
    RiskAssessment,
    RiskLevel,
    SafetyFlag,
    Severity,
    UrgencyLevel,
)
from clinassist.schemas.requests import RequestKind


HIGH_COMPLEXITY_THRESHOLD = 7

EMERGENCY_ASSESSMENT = RiskAssessment(
    risk_level=RiskLevel.CRITICAL,
    urgency_level=UrgencyLevel.EMERGENCY,
    confidence_level=ConfidenceLevel.HIGH,
    requires_immediate_attention=True,
)


def count_severities(findings: Iterable) -> dict[Severity, int]:
    counts = {s: 0 for s in Severity}
    for f in findings:
        counts[f.severity_bucket] += 1
    return counts


def aggregate(
    findings: Iterable,
    safety_flags: Sequence[SafetyFlag] = (),
    *,
    complexity_score: int = 0,
) -> RiskAssessment:
    """
    Fold findings and safety flags into one assessment.

    Precedence, first match wins:
    - any safety flag or any MAJOR finding -> CRITICAL / EMERGENCY
    - more than two MODERATE findings     -> HIGH / HIGH
    - at least one MODERATE finding       -> MODERATE / MODERATE
    - otherwise                           -> LOW / LOW
    """
    findings = list(findings)
    counts = count_severities(findings)

    if not findings:
        confidence = ConfidenceLevel.HIGH if safety_flags else ConfidenceLevel.LOW
    elif complexity_score > HIGH_COMPLEXITY_THRESHOLD:
        confidence = ConfidenceLevel.MODERATE
    else:
        confidence = ConfidenceLevel.HIGH

    if safety_flags or counts[Severity.MAJOR] > 0:
        return RiskAssessment(
            risk_level=RiskLevel.CRITICAL,
            urgency_level=UrgencyLevel.EMERGENCY,
            confidence_level=confidence,
            requires_immediate_attention=True,
        )

    if counts[Severity.MODERATE] > 2:
        risk, urgency = RiskLevel.HIGH, UrgencyLevel.HIGH
    elif counts[Severity.MODERATE] >= 1:
        risk, urgency = RiskLevel.MODERATE, UrgencyLevel.MODERATE
    else:
        risk, urgency = RiskLevel.LOW, UrgencyLevel.LOW

    return RiskAssessment(risk_level=risk, urgency_level=urgency, confidence_level=confidence)


# ------------------------------------------------------------------
# Narrative helpers
# ------------------------------------------------------------------

PHARMACIST_ADVICE = {
    RiskLevel.CRITICAL: "🚨 URGENT: Immediate pharmacist consultation recommended due to critical drug interactions.",
    RiskLevel.HIGH: "⚠️ Pharmacist consultation recommended within 24 hours.",
    RiskLevel.MODERATE: "Pharmacist consultation recommended at next convenient opportunity.",
    RiskLevel.LOW: "Routine pharmacist review recommended as part of medication reconciliation.",
}

DEFAULT_DRUG_RECOMMENDATIONS = (
    "Consult with a clinical pharmacist for medication review",
    "Monitor for any new symptoms or side effects",
    "Keep an updated medication list",
)

PROVIDER_GUIDANCE = {
    RiskLevel.CRITICAL: "Immediate clinical review required before acting on this recommendation.",
    RiskLevel.HIGH: "Review with a senior clinician or relevant specialist before implementation.",
    RiskLevel.MODERATE: "Apply clinical judgment and confirm against local guidelines.",
    RiskLevel.LOW: "Consider within routine care and document the rationale.",
}


def _interaction_summary(extraction: ExtractionResult) -> str:
    major = len(extraction.major_interactions)
    moderate = len(extraction.moderate_interactions)
    minor = len(extraction.minor_interactions)

    lines = ["OVERALL RISK ASSESSMENT:", ""]
    if major:
        lines.append(f"🚨 {major} MAJOR interaction(s) identified requiring immediate attention.")
        lines.append("Recommend immediate medication review and possible substitution.")
    if moderate:
        lines.append(f"⚠️ {moderate} MODERATE interaction(s) requiring monitoring.")
        lines.append("Close patient monitoring and possible dose adjustments needed.")
    if minor:
        lines.append(f"ℹ️ {minor} MINOR interaction(s) with minimal clinical significance.")
    if not (major or moderate or minor):
        lines.append("✅ No significant drug interactions identified.")
        lines.append("Continue current regimen with routine monitoring.")

    lines.append("")
    lines.append("ALWAYS consult with a clinical pharmacist for complex medication regimens.")
    return "\n".join(lines)


def summarize_risk(kind: RequestKind, extraction: ExtractionResult, assessment: RiskAssessment) -> str:
    if kind == RequestKind.DRUG_INTERACTION:
        return _interaction_summary(extraction)

    if kind == RequestKind.DIFFERENTIAL_DIAGNOSIS:
        top = extraction.diagnoses[0].label if extraction.diagnoses else None
        lead = f"Leading consideration: {top}. " if top else ""
        return (
            f"{lead}{len(extraction.diagnoses)} differential diagnoses considered; "
            f"urgency {assessment.urgency_level.value}."
        )

    if extraction.assessment:
        return extraction.assessment
    return f"Overall risk: {assessment.risk_level.value}; confidence {assessment.confidence_level.value}."


def build_guidance(kind: RequestKind, extraction: ExtractionResult, assessment: RiskAssessment) -> str:
    if kind == RequestKind.DRUG_INTERACTION:
        return PHARMACIST_ADVICE[assessment.risk_level]

    if kind == RequestKind.DIFFERENTIAL_DIAGNOSIS:
        if assessment.urgency_level == UrgencyLevel.EMERGENCY:
            return "🚨 SEEK IMMEDIATE MEDICAL ATTENTION 🚨"
        steps = extraction.recommended_tests[:3] or extraction.follow_up[:3]
        if steps:
            return "Next steps: " + "; ".join(steps)
        return "Next steps: clinical evaluation and targeted investigations as indicated."

    if kind == RequestKind.CLINICAL_DECISION:
        return PROVIDER_GUIDANCE[assessment.risk_level]

    return ""


def clinical_recommendations(extraction: ExtractionResult) -> tuple[str, ...]:
    return extraction.clinical_recommendations or DEFAULT_DRUG_RECOMMENDATIONS
