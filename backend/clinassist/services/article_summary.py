from __future__ import annotations

import re
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from sqlalchemy.orm import Session

from clinassist.core.config import settings
from clinassist.core.exceptions import AllProvidersUnavailable
from clinassist.db.session import SessionLocal
from clinassist.models.article import Article
from clinassist.services.prompt_compiler import compile_article_summary
from clinassist.services.provider_router import ProviderRouter
from clinassist.utils.logger import logger


SUMMARY_PLACEHOLDER = "🤖 AI summary generating... Please refresh in a moment for the full summary."

SummaryCallback = Callable[[str, str, str], None]


def fallback_summary(title: str, abstract: Optional[str]) -> str:
    """
    Extractive summary used when no provider can answer: the first two
    sentences of a long abstract, otherwise a title-based sentence.
    """
    if abstract and len(abstract) > 200:
        sentences = [s.strip() for s in abstract.split(".") if s.strip()]
        if len(sentences) >= 2:
            return f"{sentences[0]}. {sentences[1]}."

    return (
        f"This article discusses {(title or '').lower()}. For detailed information, "
        "please review the full abstract and consult the complete publication."
    )


def summarize_article(router: ProviderRouter, title: str, abstract: Optional[str]) -> tuple[str, str]:
    """
    Returns (summary, status) where status is "completed" or "fallback".
    """
    try:
        response = router.generate(compile_article_summary(title, abstract or ""))
    except AllProvidersUnavailable as e:
        logger.warning(f"Article summary failed, using fallback: {e}")
        return fallback_summary(title, abstract), "fallback"

    summary = re.sub(r"^\s*summary\s*:\s*", "", response.text, flags=re.I).strip()
    if not summary:
        return fallback_summary(title, abstract), "fallback"
    return summary, "completed"


def persist_summary(pmid: str, summary: str, status: str) -> None:
    db = SessionLocal()
    try:
        article = db.query(Article).filter(Article.pmid == pmid).first()
        if article is None:
            logger.warning(f"Article {pmid} disappeared before its summary was stored")
            return
        article.ai_summary = summary
        article.summary_status = status
        db.commit()
    finally:
        db.close()


class ArticleSummaryQueue:
    """
    Fire-and-forget enrichment. `submit` returns the placeholder at once;
    a worker thread produces the summary and hands it to `on_complete`.
    """

    def __init__(
        self,
        router: Optional[ProviderRouter] = None,
        on_complete: Optional[SummaryCallback] = None,
        max_workers: Optional[int] = None,
    ):
        self.router = router or ProviderRouter.from_settings()
        self.on_complete = on_complete or persist_summary
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.SUMMARY_WORKERS,
            thread_name_prefix="article-summary",
        )
        self._pending: dict[str, Future] = {}

    def submit(self, article_id: str, title: str, abstract: Optional[str]) -> str:
        future = self._executor.submit(self._run, article_id, title, abstract)
        self._pending[article_id] = future
        future.add_done_callback(lambda _f, key=article_id: self._pending.pop(key, None))
        return SUMMARY_PLACEHOLDER

    def _run(self, article_id: str, title: str, abstract: Optional[str]) -> str:
        summary, status = summarize_article(self.router, title, abstract)
        try:
            self.on_complete(article_id, summary, status)
        except Exception:
            logger.exception(f"Storing summary for article {article_id} failed")
            raise
        return summary

    def pending(self) -> list[str]:
        return list(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# ------------------------------------------------------------------
# Article registration
# ------------------------------------------------------------------

def register_article(
    db: Session,
    *,
    pmid: str,
    title: str,
    abstract: Optional[str],
    journal: Optional[str],
    queue: ArticleSummaryQueue,
) -> Article:
    article = db.query(Article).filter(Article.pmid == pmid).first()
    if article is None:
        article = Article(pmid=pmid, title=title, abstract=abstract, journal=journal)
        db.add(article)
    else:
        article.title = title
        article.abstract = abstract
        article.journal = journal

    if abstract:
        article.ai_summary = SUMMARY_PLACEHOLDER
        article.summary_status = "pending"
        db.commit()
        queue.submit(pmid, title, abstract)
    else:
        article.ai_summary = fallback_summary(title, abstract)
        article.summary_status = "fallback"
        db.commit()

    db.refresh(article)
    return article


def get_article(db: Session, pmid: str) -> Optional[Article]:
    return db.query(Article).filter(Article.pmid == pmid).first()
