from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index

from a11y_service.platform.db.base import TaskOwnedModel


class PageStatus:
    """Page-list entry statuses, in the only order they may move."""
    new = "New"
    in_progress = "In Progress"
    complete = "Complete"
    failed = "Failed"


PAGE_STATUS_ORDER = {
    PageStatus.new: 0,
    PageStatus.in_progress: 1,
    PageStatus.complete: 2,
    PageStatus.failed: 2,
}

TERMINAL_PAGE_STATUSES = {PageStatus.complete, PageStatus.failed}


class Result(TaskOwnedModel):
    """
    One run of a task.

    The page list is written while the run progresses; `count`, `results`
    and `failures` stay NULL until the run has attempted every page.
    """
    __tablename__ = "results"

    date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    page_list = Column(JSON, nullable=False, default=list)
    ignore = Column(JSON, nullable=True)

    count = Column(JSON, nullable=True)
    results = Column(JSON, nullable=True)
    failures = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_results_task_date", "task_id", "date"),
    )
