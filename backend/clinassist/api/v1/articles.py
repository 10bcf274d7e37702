from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinassist.core.dependencies import get_summary_queue
from clinassist.db.session import get_db
from clinassist.schemas.results import ArticleIn, ArticleOut
from clinassist.services.article_summary import ArticleSummaryQueue, get_article, register_article


router = APIRouter(prefix="/articles")


def _to_out(article) -> ArticleOut:
    return ArticleOut(
        pmid=article.pmid,
        title=article.title,
        abstract=article.abstract,
        journal=article.journal,
        ai_summary=article.ai_summary,
        summary_status=article.summary_status,
    )


@router.post("", response_model=ArticleOut, status_code=202)
def create_article(
    payload: ArticleIn,
    db: Session = Depends(get_db),
    queue: ArticleSummaryQueue = Depends(get_summary_queue),
):
    article = register_article(
        db,
        pmid=payload.pmid,
        title=payload.title,
        abstract=payload.abstract,
        journal=payload.journal,
        queue=queue,
    )
    return _to_out(article)


@router.get("/{pmid}", response_model=ArticleOut)
def read_article(pmid: str, db: Session = Depends(get_db)):
    article = get_article(db, pmid)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return _to_out(article)
