# commands.py
# ------------------------------------------------------------------------------------
#  Slash-command dispatch, independent of the Discord client:
#  - submit-render  -> JobLifecycle.submit_job
#  - queue          -> JobLifecycle.list_open_jobs
#  - claim          -> JobLifecycle.claim_job
#  - complete       -> JobLifecycle.complete_job
#  Every command runs its store work in a thread. One that outlives the timeout
#  is deferred, not dropped, and always comes back as a Reply.
# ------------------------------------------------------------------------------------

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from job_store import RenderJob, RenderStatus, StoreError
from lifecycle import InvalidTransition, JobLifecycle, JobNotFound

logger = logging.getLogger(__name__)

# Discord rejects message content above this length
MESSAGE_LIMIT = 2000
TRUNCATED_MARKER = "…"
# long descriptions are cut to this many characters when the queue overflows
DESCRIPTION_PREVIEW = 100


@dataclass
class Reply:
    content: str
    ephemeral: bool = False


def format_job_line(job: RenderJob, max_description: Optional[int] = None) -> str:
    status = RenderStatus(job.status).value
    description = job.description or ""
    if max_description is not None and len(description) > max_description:
        description = description[: max_description - 1] + TRUNCATED_MARKER
    return f"ID: {job.id} — {description} — Status: {status}"


def format_queue(jobs: Iterable[RenderJob], limit: int = MESSAGE_LIMIT) -> str:
    """
    Newline list of open jobs that fits in `limit` characters.
    On overflow descriptions are shortened first, then trailing jobs are
    dropped and counted in the last line.
    """
    jobs = list(jobs)
    if not jobs:
        return "Geen open jobs."
    text = "\n".join(format_job_line(j) for j in jobs)
    if len(text) <= limit:
        return text

    lines = [format_job_line(j, DESCRIPTION_PREVIEW) for j in jobs]
    text = "\n".join(lines)
    if len(text) <= limit:
        return text

    # reserve room for the widest possible marker
    budget = limit - len(_dropped_marker(len(lines))) - 1
    kept, size = [], 0
    for line in lines:
        extra = len(line) + (1 if kept else 0)
        if size + extra > budget:
            break
        kept.append(line)
        size += extra
    kept.append(_dropped_marker(len(lines) - len(kept)))
    return "\n".join(kept)


def _dropped_marker(count: int) -> str:
    return f"{TRUNCATED_MARKER} (+{count} meer)"


class CommandRouter:
    def __init__(self, lifecycle: JobLifecycle, timeout: float = 2.5):
        self.lifecycle = lifecycle
        self.timeout = timeout
        self._handlers = {
            "submit-render": self._submit_render,
            "queue": self._queue,
            "claim": self._claim,
            "complete": self._complete,
        }

    @property
    def command_names(self):
        return list(self._handlers)

    async def dispatch(
        self,
        name: str,
        actor_id: str,
        options: Optional[Dict[str, Any]] = None,
        on_slow: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> Reply:
        """
        Run one command and turn its outcome into a Reply.

        A command still running after `timeout` is not abandoned: its store
        write may already be on its way, so `on_slow` is awaited (the Discord
        client uses it to defer the interaction) and the real result is
        reported once the command finishes.
        """
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("unknown command %r from %s", name, actor_id)
            return Reply("Onbekend commando.", ephemeral=True)

        task = asyncio.ensure_future(handler(actor_id, options or {}))
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(task), self.timeout)
            except asyncio.TimeoutError:
                logger.warning("command %s still running after %.1fs", name, self.timeout)
                await self._notify_slow(name, on_slow)
                return await task
        except JobNotFound as e:
            return Reply(f"Job **{e.job_id}** bestaat niet.", ephemeral=True)
        except InvalidTransition as e:
            verb = "geclaimd" if e.target is RenderStatus.IN_PROGRESS else "voltooid"
            return Reply(
                f"Job **{e.job_id}** kan niet worden {verb} (status: {e.current.value}).",
                ephemeral=True,
            )
        except StoreError as e:
            logger.error("command %s failed in store: %s", name, e)
            return self._failure(name)
        except Exception:
            logger.exception("command %s failed", name)
            return self._failure(name)

    @staticmethod
    async def _notify_slow(name: str, on_slow: Optional[Callable[[], Awaitable[Any]]]) -> None:
        if on_slow is None:
            return
        try:
            await on_slow()
        except Exception:
            # the command keeps running; only the early notice is lost
            logger.exception("slow notice for command %s failed", name)

    @staticmethod
    def _failure(name: str) -> Reply:
        if name == "submit-render":
            return Reply("Fout bij opslaan.", ephemeral=True)
        return Reply("Fout.")

    # ---------- Handlers ----------
    async def _submit_render(self, actor_id: str, options: Dict[str, Any]) -> Reply:
        description = options["description"]
        job_id = await asyncio.to_thread(self.lifecycle.submit_job, actor_id, description)
        return Reply(f"Renderjob aangemaakt! ID **{job_id}**")

    async def _queue(self, actor_id: str, options: Dict[str, Any]) -> Reply:
        jobs = await asyncio.to_thread(self.lifecycle.list_open_jobs)
        return Reply(format_queue(jobs))

    async def _claim(self, actor_id: str, options: Dict[str, Any]) -> Reply:
        job_id = int(options["job_id"])
        await asyncio.to_thread(self.lifecycle.claim_job, job_id, actor_id)
        return Reply(f"Job **{job_id}** is geclaimd.")

    async def _complete(self, actor_id: str, options: Dict[str, Any]) -> Reply:
        job_id = int(options["job_id"])
        url = options["result_url"]
        await asyncio.to_thread(self.lifecycle.complete_job, job_id, url)
        return Reply(f"Job **{job_id}** voltooid! Resultaat: {url}")
