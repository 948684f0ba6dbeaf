# job_store.py
import enum
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import Column, Enum as SAEnum
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Field, Session, create_engine, select

from settings import settings

logger = logging.getLogger(__name__)


class RenderStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class StoreError(Exception):
    pass


class RenderJob(SQLModel, table=True):
    __tablename__ = "renders"
    # ids are never handed out twice, even after the last row is gone
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str
    description: Optional[str] = None
    status: RenderStatus = Field(
        default=RenderStatus.PENDING,
        sa_column=Column(
            SAEnum(
                RenderStatus,
                name="render_status",
                native_enum=False,
                length=16,
                validate_strings=True,
                # persist "in-progress", not "IN_PROGRESS"
                values_callable=lambda enum_cls: [m.value for m in enum_cls],
            ),
            nullable=False,
        ),
    )
    assigned_to: Optional[str] = None
    result_url: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class JobStore:
    """
    Durable CRUD for render jobs on a single SQLite file.

    Reads go straight to the database, nothing is cached. Writes are
    serialized by one process-wide lock so a read-check-write transition
    runs as a unit.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.database_url
        connect_args = {"check_same_thread": False} if self.url.startswith("sqlite") else {}
        self.engine = create_engine(self.url, connect_args=connect_args)
        self._lock = threading.Lock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        # objects stay readable after the session closes
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(str(e)) from e
        finally:
            session.close()

    def create_table(self) -> None:
        """Create the renders table if it does not exist yet."""
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"schema init failed: {e}") from e
        logger.debug("schema ready at %s", self.url)

    def insert(self, requester_id: str, description: Optional[str]) -> int:
        job = RenderJob(
            user_id=requester_id,
            description=description,
            status=RenderStatus.PENDING,
        )
        with self._lock, self._session() as session:
            session.add(job)
            session.commit()
            return job.id

    def get(self, job_id: int) -> Optional[RenderJob]:
        with self._session() as session:
            return session.get(RenderJob, job_id)

    def list_open(self) -> List[RenderJob]:
        stmt = (
            select(RenderJob)
            .where(RenderJob.status != RenderStatus.COMPLETE)
            .order_by(RenderJob.id)
        )
        with self._session() as session:
            return list(session.exec(stmt).all())

    def update_claim(
        self,
        job_id: int,
        assignee: str,
        *,
        expected: Optional[RenderStatus] = None,
    ) -> int:
        return self._transition(
            job_id, RenderStatus.IN_PROGRESS, expected, assigned_to=assignee
        )

    def update_complete(
        self,
        job_id: int,
        result_url: str,
        *,
        expected: Optional[RenderStatus] = None,
    ) -> int:
        return self._transition(
            job_id, RenderStatus.COMPLETE, expected, result_url=result_url
        )

    def _transition(
        self,
        job_id: int,
        target: RenderStatus,
        expected: Optional[RenderStatus],
        **values,
    ) -> int:
        """
        Move one row to `target` and set `values` on it.
        With `expected` the write only happens when the current status
        matches. Returns the number of rows changed (0 or 1).
        """
        with self._lock, self._session() as session:
            job = session.get(RenderJob, job_id)
            if job is None:
                return 0
            if expected is not None and job.status != expected:
                return 0
            job.status = target
            for key, value in values.items():
                setattr(job, key, value)
            session.add(job)
            session.commit()
            return 1


job_store = JobStore()
