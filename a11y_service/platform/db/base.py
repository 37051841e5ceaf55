"""
Declarative base for the three collections.

Ids are time-ordered uuid7 strings, so ordering by id follows creation
order and any malformed id can be rejected before it reaches the database.
"""
import sqlalchemy
from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import declarative_base, declared_attr
from uuid_extension import uuid7

Base = declarative_base()


def new_id() -> str:
    return str(uuid7())


class BaseModel(Base):
    __abstract__ = True
    id = Column(String, primary_key=True, default=new_id, index=True)
    created_at = Column(
        sqlalchemy.DateTime(timezone=True), server_default=sqlalchemy.func.now(), nullable=False
    )
    updated_at = Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        onupdate=sqlalchemy.func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"


class TaskOwnedModel(BaseModel):
    """Results and skips: rows that belong to one task and go away with it."""
    __abstract__ = True

    @declared_attr
    def task_id(cls):
        return Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<{type(self).__name__} {self.id} of task {self.task_id}>"

# Models import this module; it must not import them back.
