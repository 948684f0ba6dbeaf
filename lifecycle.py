# lifecycle.py
import logging
from typing import List, Optional

from job_store import JobStore, RenderJob, RenderStatus

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    def __init__(self, job_id: int, message: str):
        super().__init__(message)
        self.job_id = job_id


class JobNotFound(LifecycleError):
    def __init__(self, job_id: int):
        super().__init__(job_id, f"job {job_id} not found")


class InvalidTransition(LifecycleError):
    def __init__(self, job_id: int, current: RenderStatus, target: RenderStatus):
        super().__init__(job_id, f"job {job_id} cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class JobLifecycle:
    """
    pending -> in-progress -> complete, nothing goes back.

    In strict mode claim and complete only fire from their source state and
    raise JobNotFound / InvalidTransition otherwise. With strict=False the
    updates are applied whatever the current status is, and an unknown id
    changes nothing without raising.
    """

    def __init__(self, store: JobStore, strict: bool = True):
        self.store = store
        self.strict = strict

    def submit_job(self, requester_id: str, description: Optional[str]) -> int:
        job_id = self.store.insert(requester_id, description)
        logger.info("job %s submitted by %s", job_id, requester_id)
        return job_id

    def list_open_jobs(self) -> List[RenderJob]:
        return self.store.list_open()

    def get_job(self, job_id: int) -> RenderJob:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def claim_job(self, job_id: int, actor_id: str) -> int:
        expected = RenderStatus.PENDING if self.strict else None
        changed = self.store.update_claim(job_id, actor_id, expected=expected)
        self._check(job_id, changed, RenderStatus.IN_PROGRESS)
        if changed:
            logger.info("job %s claimed by %s", job_id, actor_id)
        return changed

    def complete_job(self, job_id: int, result_url: str) -> int:
        expected = RenderStatus.IN_PROGRESS if self.strict else None
        changed = self.store.update_complete(job_id, result_url, expected=expected)
        self._check(job_id, changed, RenderStatus.COMPLETE)
        if changed:
            logger.info("job %s completed: %s", job_id, result_url)
        return changed

    def _check(self, job_id: int, changed: int, target: RenderStatus) -> None:
        if changed or not self.strict:
            if not changed:
                logger.warning("job %s: %s matched no rows", job_id, target.value)
            return
        # the write was refused; read back to say why
        job = self.store.get(job_id)
        if job is None:
            logger.warning("job %s: not found", job_id)
            raise JobNotFound(job_id)
        logger.warning("job %s: refused %s -> %s", job_id, job.status.value, target.value)
        raise InvalidTransition(job_id, job.status, target)
