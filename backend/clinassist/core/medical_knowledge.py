from dataclasses import dataclass
from types import MappingProxyType


# ------------------------------------------------------------------
# Medications that always warrant a pharmacist double-check.
# Matched against the whole lower-cased medication name.
# ------------------------------------------------------------------

HIGH_RISK_MEDICATIONS = frozenset({
    "warfarin",
    "heparin",
    "insulin",
    "digoxin",
    "lithium",
    "methotrexate",
    "phenytoin",
    "carbamazepine",
    "amiodarone",
})


# ------------------------------------------------------------------
# Known dangerous pairs. Each substance is matched by substring so that
# "Aspirin 81mg" still counts as aspirin.
# ------------------------------------------------------------------

@dataclass(frozen=True)
class CombinationRule:
    substances: tuple[str, str]
    warning: str


DANGEROUS_COMBINATIONS: tuple[CombinationRule, ...] = (
    CombinationRule(
        substances=("warfarin", "aspirin"),
        warning="⚠️ CRITICAL: Warfarin + Aspirin combination - High bleeding risk",
    ),
)


DRUG_CATEGORIES = MappingProxyType({
    "anticoagulant": "Blood Thinner",
    "antiplatelet": "Platelet Inhibitor",
    "nsaid": "Anti-inflammatory",
    "ace_inhibitor": "Blood Pressure",
    "beta_blocker": "Heart Rate Control",
})


# ------------------------------------------------------------------
# Specialty focus paragraphs appended to the prompt preamble
# ------------------------------------------------------------------

SPECIALTY_PROMPTS = MappingProxyType({
    "cardiology": (
        "Focus on cardiovascular conditions, cardiac risk factors, ECG interpretation, "
        "and heart failure management. Consider ASCVD risk, CHA2DS2-VASc scoring, "
        "and current ACC/AHA guidelines."
    ),
    "neurology": (
        "Emphasize neurological examination findings, differential diagnosis of "
        "neurological symptoms, stroke protocols, and NIHSS scoring."
    ),
    "psychiatry": (
        "Consider mental health assessments, psychiatric medications, suicide risk "
        "evaluation, and safety assessments."
    ),
    "pediatrics": (
        "Apply pediatric-specific considerations, age-appropriate dosing, developmental "
        "factors, and pediatric vital sign norms."
    ),
    "geriatrics": (
        "Consider geriatric syndromes, polypharmacy interactions, age-related "
        "physiological changes, and fall risk assessments."
    ),
    "emergency": (
        "Focus on emergency triage, rapid assessment protocols, emergency procedures, "
        "and time-sensitive interventions."
    ),
    "family": (
        "Consider primary care management, preventive care guidelines, family dynamics, "
        "and comprehensive care coordination."
    ),
    "internal": (
        "Focus on internal medicine conditions, complex medical management, and "
        "multisystem disease interactions."
    ),
})


MEDICAL_SPECIALTIES = MappingProxyType({
    "CARDIOLOGY": ("Coronary Artery Disease", "Heart Failure", "Arrhythmias", "Hypertension"),
    "NEUROLOGY": ("Stroke", "Seizures", "Headache", "Dementia", "Multiple Sclerosis"),
    "EMERGENCY": ("Chest Pain", "Shortness of Breath", "Severe Trauma", "Sepsis"),
})


RISK_CALCULATORS = MappingProxyType({
    "cardiology": (
        "ASCVD Risk Calculator",
        "CHADS2 Score",
        "CHA2DS2-VASc Score",
        "GRACE Score",
        "TIMI Risk Score",
        "Framingham Risk Score",
    ),
    "neurology": (
        "NIHSS (NIH Stroke Scale)",
        "ABCD2 Score",
        "ICH Score",
        "Hunt and Hess Scale",
    ),
    "emergency": (
        "qSOFA Score",
        "SOFA Score",
        "APACHE II Score",
        "Glasgow Coma Scale",
        "CURB-65 Score",
    ),
    "general": (
        "BMI Calculator",
        "eGFR Calculator",
        "Creatinine Clearance",
        "Body Surface Area",
    ),
})


def get_specialty_prompt(specialty: str | None) -> str | None:
    if not specialty:
        return None
    return SPECIALTY_PROMPTS.get(specialty.strip().lower())


def get_risk_calculators(specialty: str | None = None) -> dict[str, tuple[str, ...]]:
    """
    Calculators for one specialty (plus the general set), or all of them.
    """
    if not specialty:
        return dict(RISK_CALCULATORS)

    key = specialty.strip().lower()
    out = {"general": RISK_CALCULATORS["general"]}
    if key in RISK_CALCULATORS:
        out[key] = RISK_CALCULATORS[key]
    return out
