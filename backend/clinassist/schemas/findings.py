from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


# ------------------------------------------------------------------
# Levels
# ------------------------------------------------------------------

class Severity(str, Enum):
    MAJOR = "MAJOR"
    MODERATE = "MODERATE"
    MINOR = "MINOR"


class Likelihood(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class EvidenceLevel(str, Enum):
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"
    EXPERT_OPINION = "EXPERT_OPINION"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class UrgencyLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    EMERGENCY = "EMERGENCY"


class ConfidenceLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


LIKELIHOOD_SEVERITY = {
    Likelihood.HIGH: Severity.MAJOR,
    Likelihood.MEDIUM: Severity.MODERATE,
    Likelihood.LOW: Severity.MINOR,
}

INTERACTION_ADVICE = {
    Severity.MAJOR: (
        "Avoid combination or use alternative medications",
        "Consider alternative therapy",
    ),
    Severity.MODERATE: (
        "Monitor closely and adjust doses if needed",
        "Close monitoring required",
    ),
    Severity.MINOR: (
        "Be aware of potential interaction",
        "Minimal clinical significance",
    ),
}


# ------------------------------------------------------------------
# Findings extracted from provider text
# ------------------------------------------------------------------

class _Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def severity_bucket(self) -> Severity:
        return Severity.MINOR


class Interaction(_Finding):
    drug_a: str
    drug_b: str
    severity: Severity
    description: str = ""
    management: str = ""
    recommendation: str = ""

    @property
    def severity_bucket(self) -> Severity:
        return self.severity


class FoodDrugInteraction(_Finding):
    drug: str
    food: str
    effect: str = ""


class DiagnosisOption(_Finding):
    label: str
    likelihood: Likelihood = Likelihood.MEDIUM
    supporting_features: str = ""
    rank: int = 0

    @property
    def severity_bucket(self) -> Severity:
        return LIKELIHOOD_SEVERITY[self.likelihood]


class RecommendationOption(_Finding):
    text: str
    evidence_level: EvidenceLevel = EvidenceLevel.EXPERT_OPINION


class ExtractionResult(BaseModel):
    """
    Everything the extractor recovered from one provider answer.
    Categories are disjoint: a line lands in at most one of them.
    """

    model_config = ConfigDict(frozen=True)

    major_interactions: tuple[Interaction, ...] = ()
    moderate_interactions: tuple[Interaction, ...] = ()
    minor_interactions: tuple[Interaction, ...] = ()
    food_interactions: tuple[FoodDrugInteraction, ...] = ()
    diagnoses: tuple[DiagnosisOption, ...] = ()
    primary_recommendation: Optional[RecommendationOption] = None
    recommendations: tuple[RecommendationOption, ...] = ()

    clinical_reasoning: str = ""
    evidence_summary: str = ""
    risk_benefit: str = ""
    assessment: str = ""

    red_flags: tuple[str, ...] = ()
    monitoring: tuple[str, ...] = ()
    alternatives: tuple[str, ...] = ()
    recommended_tests: tuple[str, ...] = ()
    referrals: tuple[str, ...] = ()
    follow_up: tuple[str, ...] = ()
    contraindications: tuple[str, ...] = ()
    implementation: tuple[str, ...] = ()
    patient_education: tuple[str, ...] = ()
    clinical_recommendations: tuple[str, ...] = ()
    next_steps: tuple[str, ...] = ()
    suggested_questions: tuple[str, ...] = ()

    @property
    def interactions(self) -> tuple[Interaction, ...]:
        return self.major_interactions + self.moderate_interactions + self.minor_interactions

    @property
    def findings(self) -> tuple[_Finding, ...]:
        out: tuple[_Finding, ...] = self.interactions + self.food_interactions + self.diagnoses
        if self.primary_recommendation is not None:
            out += (self.primary_recommendation,)
        return out + self.recommendations

    @property
    def is_empty(self) -> bool:
        for name, value in self:
            if value:
                return False
        return True


# ------------------------------------------------------------------
# Safety / risk
# ------------------------------------------------------------------

class SafetyTrigger(str, Enum):
    INPUT_KEYWORD = "INPUT_KEYWORD"
    DECLARED_EMERGENCY = "DECLARED_EMERGENCY"
    KNOWN_DANGEROUS_COMBINATION = "KNOWN_DANGEROUS_COMBINATION"
    HIGH_RISK_SUBSTANCE = "HIGH_RISK_SUBSTANCE"


class SafetyFlag(BaseModel):
    model_config = ConfigDict(frozen=True)

    triggered_by: SafetyTrigger
    detail: str


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_level: RiskLevel
    urgency_level: UrgencyLevel
    confidence_level: ConfidenceLevel
    requires_immediate_attention: bool = False
