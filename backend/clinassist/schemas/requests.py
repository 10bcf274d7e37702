from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RequestKind(str, Enum):
    CHAT = "chat"
    DRUG_INTERACTION = "drug_interaction"
    DIFFERENTIAL_DIAGNOSIS = "differential_diagnosis"
    CLINICAL_DECISION = "clinical_decision"
    ARTICLE_SUMMARY = "article_summary"


Gender = Literal["MALE", "FEMALE", "OTHER"]

OPTIONAL_TEXT_FIELDS = (
    "patient_conditions",
    "patient_data",
    "allergies",
    "kidney_function",
    "liver_function",
    "medical_history",
    "current_medications",
    "family_history",
    "social_history",
    "onset_type",
    "symptom_duration",
    "previous_treatments",
    "treatment_goals",
    "patient_preferences",
    "additional_notes",
    "medical_context",
    "specialty",
)


def clean_string_list(values, *, limit: int | None = None, field: str = "list") -> tuple[str, ...] | None:
    """
    Trim, drop blanks and de-duplicate case-insensitively (first spelling wins).
    An input that cleans down to nothing becomes None.
    """
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        raise ValueError(f"{field} must be a list of strings")

    seen = set()
    out = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if not s:
            continue
        key = " ".join(s.lower().split())
        if key in seen:
            continue
        seen.add(key)
        out.append(s)

    if limit is not None and len(out) > limit:
        raise ValueError(f"Too many entries in {field} (max {limit})")

    return tuple(out) or None


class ClinicalRequest(BaseModel):
    """
    Immutable input to one pipeline run. Demographics are shared by every
    variant; each subclass names its own free-text core field.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="ignore")

    kind: RequestKind = RequestKind.CHAT

    patient_age: Optional[int] = Field(default=None, ge=0, le=150)
    patient_gender: Optional[Gender] = None
    patient_weight: Optional[float] = Field(default=None, gt=0, le=500)
    specialty: Optional[str] = Field(default=None, max_length=50)
    urgency: Optional[str] = None
    additional_notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("patient_gender", "urgency", mode="before", check_fields=False)
    @classmethod
    def _upper_code(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v

    def screening_text(self) -> str:
        raise NotImplementedError

    def is_pediatric(self) -> bool:
        return self.patient_age is not None and self.patient_age < 18

    def is_geriatric(self) -> bool:
        return self.patient_age is not None and self.patient_age >= 65

    def is_emergency_declared(self) -> bool:
        return self.urgency == "EMERGENCY"

    def complexity_score(self) -> int:
        return 0


class ChatTurn(ClinicalRequest):
    kind: Literal[RequestKind.CHAT] = RequestKind.CHAT

    message: str = Field(min_length=1, max_length=2000)
    conversation_id: Optional[int] = None
    medical_context: Optional[str] = Field(default=None, max_length=1000)

    def screening_text(self) -> str:
        return self.message


class DrugList(ClinicalRequest):
    kind: Literal[RequestKind.DRUG_INTERACTION] = RequestKind.DRUG_INTERACTION

    medications: tuple[str, ...]
    patient_conditions: Optional[str] = Field(default=None, max_length=1000)
    allergies: Optional[str] = Field(default=None, max_length=500)
    current_symptoms: Optional[tuple[str, ...]] = None
    kidney_function: Optional[str] = Field(default=None, max_length=500)
    liver_function: Optional[str] = Field(default=None, max_length=500)
    urgency: Optional[Literal["LOW", "MODERATE", "HIGH"]] = None
    additional_notes: Optional[str] = Field(default=None, max_length=200)

    @field_validator("medications", mode="before")
    @classmethod
    def _clean_medications(cls, v):
        meds = clean_string_list(v, limit=10, field="medications") or ()
        if len(meds) < 2:
            raise ValueError("Please provide between 2-10 medications for interaction checking")
        for m in meds:
            if len(m) > 200:
                raise ValueError("Medication name too long")
        return meds

    @field_validator("current_symptoms", mode="before")
    @classmethod
    def _clean_symptoms(cls, v):
        return clean_string_list(v, limit=10, field="current_symptoms")

    def screening_text(self) -> str:
        parts = list(self.current_symptoms or ())
        if self.additional_notes:
            parts.append(self.additional_notes)
        return "\n".join(parts)

    def is_high_risk_check(self) -> bool:
        return self.urgency == "HIGH" or len(self.medications) > 5

    def complexity_score(self) -> int:
        score = max(0, len(self.medications) - 2)
        if self.patient_conditions:
            score += 1
        if self.kidney_function or self.liver_function:
            score += 1
        if self.is_pediatric() or self.is_geriatric():
            score += 1
        if self.urgency == "HIGH":
            score += 1
        return min(score, 10)


class SymptomSet(ClinicalRequest):
    kind: Literal[RequestKind.DIFFERENTIAL_DIAGNOSIS] = RequestKind.DIFFERENTIAL_DIAGNOSIS

    symptoms: str = Field(min_length=10, max_length=2000)
    patient_data: Optional[str] = Field(default=None, max_length=1000)
    urgency: Optional[Literal["LOW", "MEDIUM", "HIGH", "EMERGENCY"]] = None
    medical_history: Optional[str] = Field(default=None, max_length=500)
    current_medications: Optional[str] = Field(default=None, max_length=500)
    vital_signs: Optional[tuple[str, ...]] = None
    physical_exam_findings: Optional[tuple[str, ...]] = None
    lab_results: Optional[tuple[str, ...]] = None
    family_history: Optional[str] = Field(default=None, max_length=500)
    social_history: Optional[str] = Field(default=None, max_length=500)
    allergies: Optional[str] = Field(default=None, max_length=300)
    onset_type: Optional[Literal["ACUTE", "CHRONIC", "SUBACUTE"]] = None
    symptom_duration: Optional[str] = Field(default=None, max_length=100)
    analysis_depth: Optional[Literal["BASIC", "STANDARD", "DETAILED", "COMPREHENSIVE", "EXPERT"]] = None

    @field_validator("vital_signs", "lab_results", mode="before")
    @classmethod
    def _clean_short_lists(cls, v, info):
        return clean_string_list(v, limit=10, field=info.field_name)

    @field_validator("physical_exam_findings", mode="before")
    @classmethod
    def _clean_exam_findings(cls, v):
        return clean_string_list(v, limit=15, field="physical_exam_findings")

    @field_validator("onset_type", "analysis_depth", mode="before")
    @classmethod
    def _upper_enum(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or None
        return v

    def screening_text(self) -> str:
        return self.symptoms

    def is_emergency_case(self) -> bool:
        return self.urgency in ("EMERGENCY", "HIGH")

    def complexity_score(self) -> int:
        score = 0
        if len(self.symptoms) > 500:
            score += 2
        if self.medical_history:
            score += 1
        if self.vital_signs:
            score += 1
        if self.physical_exam_findings:
            score += 1
        if self.lab_results:
            score += 2
        if self.current_medications:
            score += 1
        if self.is_pediatric() or self.is_geriatric():
            score += 1
        if self.is_emergency_case():
            score += 1
        return min(score, 10)


class ClinicalScenario(ClinicalRequest):
    kind: Literal[RequestKind.CLINICAL_DECISION] = RequestKind.CLINICAL_DECISION

    clinical_scenario: str = Field(min_length=20, max_length=3000)
    patient_data: Optional[str] = Field(default=None, max_length=1500)
    decision_type: Optional[
        Literal["DIAGNOSIS", "TREATMENT", "MONITORING", "REFERRAL", "PREVENTION", "PROGNOSIS", "INVESTIGATION"]
    ] = None
    evidence_level: Optional[Literal["HIGH", "MODERATE", "LOW", "EXPERT_OPINION"]] = None
    urgency: Optional[Literal["EMERGENCY", "HIGH", "MODERATE", "LOW", "ROUTINE"]] = None
    medical_history: Optional[str] = Field(default=None, max_length=1000)
    current_medications: Optional[str] = Field(default=None, max_length=500)
    allergies: Optional[str] = Field(default=None, max_length=500)
    available_diagnostic_tests: Optional[tuple[str, ...]] = None
    treatment_options: Optional[tuple[str, ...]] = None
    contraindications: Optional[tuple[str, ...]] = None
    comorbidities: Optional[tuple[str, ...]] = None
    previous_treatments: Optional[str] = Field(default=None, max_length=500)
    treatment_goals: Optional[str] = Field(default=None, max_length=500)
    patient_preferences: Optional[str] = Field(default=None, max_length=200)
    clinical_setting: Optional[Literal["INPATIENT", "OUTPATIENT", "EMERGENCY", "ICU", "SURGERY", "CLINIC"]] = None
    analysis_depth: Optional[Literal["BASIC", "STANDARD", "DETAILED", "COMPREHENSIVE", "EXPERT"]] = None
    include_alternatives: bool = True
    include_cost_considerations: bool = False
    include_risk_assessment: bool = True
    include_monitoring_plan: bool = True
    specific_questions: Optional[str] = Field(default=None, max_length=300)

    @field_validator("available_diagnostic_tests", mode="before")
    @classmethod
    def _clean_tests(cls, v):
        return clean_string_list(v, limit=15, field="available_diagnostic_tests")

    @field_validator("treatment_options", mode="before")
    @classmethod
    def _clean_options(cls, v):
        return clean_string_list(v, limit=20, field="treatment_options")

    @field_validator("contraindications", "comorbidities", mode="before")
    @classmethod
    def _clean_conditions(cls, v, info):
        return clean_string_list(v, limit=10, field=info.field_name)

    @field_validator("decision_type", "evidence_level", "clinical_setting", "analysis_depth", mode="before")
    @classmethod
    def _upper_enum(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or None
        return v

    def screening_text(self) -> str:
        return self.clinical_scenario

    def is_emergency_decision(self) -> bool:
        return self.urgency == "EMERGENCY"

    def complexity_score(self) -> int:
        score = 0
        if len(self.clinical_scenario) > 1000:
            score += 2
        score += len(self.comorbidities or ())
        score += len(self.contraindications or ())
        if self.treatment_options and len(self.treatment_options) > 3:
            score += 1
        if self.is_pediatric() or self.is_geriatric():
            score += 1
        if self.is_emergency_decision():
            score += 2
        elif self.urgency == "HIGH":
            score += 1
        if self.decision_type in ("TREATMENT", "DIAGNOSIS"):
            score += 1
        return min(score, 10)
