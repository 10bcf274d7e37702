from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinassist.core.dependencies import get_clinical_service, get_current_user_id
from clinassist.core.medical_knowledge import DRUG_CATEGORIES, MEDICAL_SPECIALTIES, get_risk_calculators
from clinassist.db.session import get_db
from clinassist.schemas.requests import ClinicalRequest, ClinicalScenario, DrugList, SymptomSet
from clinassist.schemas.results import AnalysisResponse, AnalysisSummary, ClinicalResult
from clinassist.services.analysis_store import list_clinical_results, save_clinical_result
from clinassist.services.clinical_pipeline import ClinicalAiService
from clinassist.utils.logger import logger


router = APIRouter(prefix="/medical")


def _store(db: Session, user_id: str, request: ClinicalRequest, result: ClinicalResult) -> AnalysisResponse:
    try:
        analysis = save_clinical_result(db, user_id=user_id, request=request, result=result)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Persisting {request.kind.value} result failed")
        raise HTTPException(status_code=500, detail="Could not store analysis")

    return AnalysisResponse(analysis_id=analysis.id, result=result)


@router.post("/drug-interactions", response_model=AnalysisResponse)
def drug_interactions(
    payload: DrugList,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ClinicalAiService = Depends(get_clinical_service),
):
    result = service.analyze_drug_interactions(payload)
    return _store(db, user_id, payload, result)


@router.post("/differential-diagnosis", response_model=AnalysisResponse)
def differential_diagnosis(
    payload: SymptomSet,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ClinicalAiService = Depends(get_clinical_service),
):
    result = service.generate_differential_diagnosis(payload)
    return _store(db, user_id, payload, result)


@router.post("/clinical-decision", response_model=AnalysisResponse)
def clinical_decision(
    payload: ClinicalScenario,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ClinicalAiService = Depends(get_clinical_service),
):
    result = service.provide_clinical_decision_support(payload)
    return _store(db, user_id, payload, result)


@router.get("/history", response_model=List[AnalysisSummary])
def analysis_history(
    kind: Optional[str] = None,
    limit: int = 20,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    rows = list_clinical_results(db, user_id=user_id, kind=kind, limit=min(max(limit, 1), 100))
    return [
        AnalysisSummary(
            id=r.id,
            kind=r.kind,
            status=r.status,
            risk_level=r.risk_level,
            urgency_level=r.urgency_level,
            confidence_level=r.confidence_level,
            provider=r.provider,
            fallback_used=r.fallback_used,
        )
        for r in rows
    ]


@router.get("/risk-calculators")
def risk_calculators(specialty: Optional[str] = None):
    return {name: list(calcs) for name, calcs in get_risk_calculators(specialty).items()}


@router.get("/reference")
def reference_data():
    return {
        "specialties": {name: list(conditions) for name, conditions in MEDICAL_SPECIALTIES.items()},
        "drug_categories": dict(DRUG_CATEGORIES),
    }
