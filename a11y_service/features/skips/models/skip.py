from sqlalchemy import Boolean, Column, Index, String, Text

from a11y_service.platform.db.base import TaskOwnedModel


class Skip(TaskOwnedModel):
    """
    A suppression rule: marks one finding pattern of a task as intentionally
    ignored. Used for display only, results are never rewritten.
    """
    __tablename__ = "skips"

    code = Column(String(255), nullable=False)
    context = Column(Text, nullable=False)
    selector = Column(Text, nullable=False)
    url = Column(String(2048), nullable=False)

    reason = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    skip_all_pages = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_skips_match", "code", "context", "selector", "url"),
    )
