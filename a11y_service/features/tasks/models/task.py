from sqlalchemy import JSON, Boolean, Column, Index, Integer, String, Text

from a11y_service.platform.db.base import BaseModel


class Task(BaseModel):
    """
    A repeatable accessibility audit definition.

    `url` holds a single seed URL or an explicit list of URLs. `headers`
    may hold a mapping or, in rows written by older clients, a JSON string;
    the task store normalizes both to a mapping on read.
    """
    __tablename__ = "tasks"

    name = Column(String(255), nullable=False)
    url = Column(JSON, nullable=False)
    standard = Column(String(32), nullable=False)

    timeout = Column(Integer, nullable=True)
    wait = Column(Integer, nullable=True)

    ignore = Column(JSON, nullable=True)
    actions = Column(JSON, nullable=True)

    username = Column(String(255), nullable=True)
    password = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    headers = Column(JSON, nullable=True)
    scan_sitemap = Column(Boolean, default=False, nullable=False)
    hide_elements = Column(Text, nullable=True)

    # Append-only edit history: [{type, date, comment}]
    annotations = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_tasks_name_standard", "name", "standard"),
    )
