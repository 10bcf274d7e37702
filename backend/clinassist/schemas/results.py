from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clinassist.schemas.findings import ExtractionResult, RiskAssessment, SafetyFlag
from clinassist.schemas.requests import RequestKind


class ResultStatus(str, Enum):
    COMPLETED = "COMPLETED"
    EMERGENCY = "EMERGENCY"
    DEGRADED = "DEGRADED"


class Provenance(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    elapsed_ms: int
    token_estimate: int
    fallback_used: bool = False


class ClinicalResult(BaseModel):
    """
    Final structured answer handed back to the caller (and, from there,
    to persistence). Provenance is None when no provider was called.
    """

    model_config = ConfigDict(frozen=True)

    kind: RequestKind
    status: ResultStatus
    reply: str
    extraction: ExtractionResult = ExtractionResult()
    risk: RiskAssessment
    safety_flags: tuple[SafetyFlag, ...] = ()
    warnings: tuple[str, ...] = ()
    disclaimer: str
    provenance: Optional[Provenance] = None
    suggested_questions: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    risk_summary: str = ""
    guidance: str = ""

    @property
    def is_emergency(self) -> bool:
        return self.status == ResultStatus.EMERGENCY


class AnalysisResponse(BaseModel):
    analysis_id: int
    result: ClinicalResult


class AnalysisSummary(BaseModel):
    id: int
    kind: str
    status: str
    risk_level: str
    urgency_level: str
    confidence_level: str
    provider: Optional[str] = None
    fallback_used: bool = False


class ArticleIn(BaseModel):
    pmid: str = Field(min_length=1, max_length=32)
    title: str = Field(min_length=1)
    abstract: Optional[str] = None
    journal: Optional[str] = None


class ArticleOut(BaseModel):
    pmid: str
    title: str
    abstract: Optional[str] = None
    journal: Optional[str] = None
    ai_summary: Optional[str] = None
    summary_status: str
