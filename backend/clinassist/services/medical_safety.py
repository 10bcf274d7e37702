from typing import Iterable, Optional, Sequence

from clinassist.core.config import settings
from clinassist.core.medical_knowledge import DANGEROUS_COMBINATIONS, HIGH_RISK_MEDICATIONS
from clinassist.schemas.findings import SafetyFlag, SafetyTrigger
from clinassist.schemas.requests import ClinicalRequest, DrugList


# ------------------------------------------------------------------
# Emergency screening (input side, before any provider call)
# ------------------------------------------------------------------

def find_emergency_keyword(text: str, keywords: Optional[Sequence[str]] = None) -> Optional[str]:
    """
    Return the first configured emergency phrase contained in the text.

    Matching is a lower-cased substring test so it stays deterministic and
    explainable; it does not try to understand negation or context.
    """
    t = (text or "").lower()
    if not t.strip():
        return None

    for keyword in (settings.emergency_keywords if keywords is None else keywords):
        k = keyword.strip().lower()
        if k and k in t:
            return k
    return None


def detect_emergency(text: str, keywords: Optional[Sequence[str]] = None) -> bool:
    return find_emergency_keyword(text, keywords) is not None


def screen_input(request: ClinicalRequest, keywords: Optional[Sequence[str]] = None) -> Optional[SafetyFlag]:
    """
    Emergency gate for a whole request. A hit here is terminal: the
    caller must answer with the emergency response and skip the provider.
    """
    keyword = find_emergency_keyword(request.screening_text(), keywords)
    if keyword:
        return SafetyFlag(
            triggered_by=SafetyTrigger.INPUT_KEYWORD,
            detail=f"Emergency keyword detected: {keyword}",
        )

    if request.is_emergency_declared():
        return SafetyFlag(
            triggered_by=SafetyTrigger.DECLARED_EMERGENCY,
            detail="Request urgency declared as EMERGENCY",
        )

    return None


# ------------------------------------------------------------------
# Medication rules
# ------------------------------------------------------------------

def check_dangerous_combinations(medications: Iterable[str]) -> list[SafetyFlag]:
    meds = [m.strip() for m in medications if m and m.strip()]
    lowered = [m.lower() for m in meds]
    flags: list[SafetyFlag] = []

    for med, low in zip(meds, lowered):
        if low in HIGH_RISK_MEDICATIONS:
            flags.append(
                SafetyFlag(
                    triggered_by=SafetyTrigger.HIGH_RISK_SUBSTANCE,
                    detail=f"High-risk medication detected: {med}",
                )
            )

    for rule in DANGEROUS_COMBINATIONS:
        first, second = rule.substances
        if any(first in low for low in lowered) and any(second in low for low in lowered):
            flags.append(
                SafetyFlag(
                    triggered_by=SafetyTrigger.KNOWN_DANGEROUS_COMBINATION,
                    detail=rule.warning,
                )
            )

    return flags


def medication_flags(request: ClinicalRequest) -> list[SafetyFlag]:
    if isinstance(request, DrugList):
        return check_dangerous_combinations(request.medications)
    return []
