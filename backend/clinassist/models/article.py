from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from clinassist.db.base import Base


class Article(Base):
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    pmid = Column(String(32), unique=True, nullable=False, index=True)

    title = Column(Text, nullable=False)
    abstract = Column(Text, nullable=True)
    journal = Column(String(255), nullable=True)

    ai_summary = Column(Text, nullable=True)
    summary_status = Column(String(16), nullable=False, default="pending")  # pending | completed | fallback

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
