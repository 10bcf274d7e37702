from sqlalchemy.orm import Session

from clinassist.models.clinical_analysis import ClinicalAnalysis
from clinassist.schemas.requests import ClinicalRequest
from clinassist.schemas.results import ClinicalResult, ResultStatus


def save_clinical_result(
    db: Session,
    *,
    user_id: str,
    request: ClinicalRequest,
    result: ClinicalResult,
) -> ClinicalAnalysis:
    provenance = result.provenance

    analysis = ClinicalAnalysis(
        user_id=user_id,
        kind=result.kind.value,
        status=result.status.value,
        risk_level=result.risk.risk_level.value,
        urgency_level=result.risk.urgency_level.value,
        confidence_level=result.risk.confidence_level.value,
        requires_immediate_attention=result.risk.requires_immediate_attention,
        emergency_detected=result.status == ResultStatus.EMERGENCY,
        provider=provenance.provider if provenance else None,
        model_name=provenance.model if provenance else None,
        fallback_used=provenance.fallback_used if provenance else False,
        processing_time_ms=provenance.elapsed_ms if provenance else None,
        token_estimate=provenance.token_estimate if provenance else None,
        request_payload=request.model_dump(mode="json"),
        result_payload=result.model_dump(mode="json"),
    )

    db.add(analysis)
    return analysis


def list_clinical_results(
    db: Session,
    *,
    user_id: str,
    kind: str | None = None,
    limit: int = 20,
) -> list[ClinicalAnalysis]:
    q = db.query(ClinicalAnalysis).filter(ClinicalAnalysis.user_id == user_id)
    if kind:
        q = q.filter(ClinicalAnalysis.kind == kind)
    return q.order_by(ClinicalAnalysis.id.desc()).limit(limit).all()
