from typing import Optional

from fastapi import Header

from clinassist.services.article_summary import ArticleSummaryQueue
from clinassist.services.clinical_pipeline import ClinicalAiService


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Caller identity is resolved upstream (gateway / auth proxy) and passed
    through as a header; this service only scopes data by it.
    """
    user_id = (x_user_id or "").strip()[:64]
    return user_id or "anonymous"


# Lazy singletons (created on first request)
_clinical_service: Optional[ClinicalAiService] = None
_summary_queue: Optional[ArticleSummaryQueue] = None


def get_clinical_service() -> ClinicalAiService:
    global _clinical_service
    if _clinical_service is None:
        _clinical_service = ClinicalAiService()
    return _clinical_service


def get_summary_queue() -> ArticleSummaryQueue:
    global _summary_queue
    if _summary_queue is None:
        _summary_queue = ArticleSummaryQueue()
    return _summary_queue


def shutdown_summary_queue() -> None:
    global _summary_queue
    if _summary_queue is not None:
        _summary_queue.shutdown(wait=True)
        _summary_queue = None
