from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from clinassist.db.base import Base


class ClinicalAnalysis(Base):
    """
    Audit record of one structured pipeline run (drug interactions,
    differential diagnosis or clinical decision support).
    """

    __tablename__ = "clinical_analyses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    kind = Column(String(32), nullable=False, index=True)
    status = Column(String(16), nullable=False)

    # 🛑 Risk assessment
    risk_level = Column(String(16), nullable=False)
    urgency_level = Column(String(16), nullable=False)
    confidence_level = Column(String(16), nullable=False)
    requires_immediate_attention = Column(Boolean, default=False, nullable=False)
    emergency_detected = Column(Boolean, default=False, nullable=False)

    # 🧾 Provenance
    provider = Column(String(32), nullable=True)
    model_name = Column(String(120), nullable=True)
    fallback_used = Column(Boolean, default=False, nullable=False)
    processing_time_ms = Column(Integer, nullable=True)
    token_estimate = Column(Integer, nullable=True)

    request_payload = Column(JSON, nullable=False)
    result_payload = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
