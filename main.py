# main.py
# ------------------------------------------------------------------------------------
#  Render queue bot:
#  - Discord slash commands (submit-render, queue, claim, complete) via discord.py
#  - GET  /            -> keep-alive for the host's uptime pinger
#  - GET  /health      -> web + bot status
#  - GET  /jobs/{id}   -> read-only job status
#  Persistence:
#    * SQLModel + SQLite (bot-data.sqlite), table "renders"
#  The bot and the web server share one event loop.
# ------------------------------------------------------------------------------------

import asyncio
import logging
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from settings import settings
from job_store import job_store, StoreError
from lifecycle import JobLifecycle, JobNotFound
from commands import CommandRouter
from bot_client import RenderBot, build_bot

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

lifecycle = JobLifecycle(job_store, strict=settings.strict_transitions)
router = CommandRouter(lifecycle, timeout=settings.command_timeout)

bot: Optional[RenderBot] = None
_bot_task: Optional[asyncio.Task] = None

app = FastAPI(title="Render Queue Bot", version="0.1.0")


def _on_bot_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Discord client stopped: %r", exc)


@app.on_event("startup")
async def _on_startup():
    global bot, _bot_task
    job_store.create_table()
    if not settings.run_bot:
        logger.info("RUN_BOT is off, serving the web endpoint only")
        return
    bot = build_bot(settings, router)
    _bot_task = asyncio.create_task(bot.start(settings.discord_token))
    _bot_task.add_done_callback(_on_bot_exit)


@app.on_event("shutdown")
async def _on_shutdown():
    if bot is not None and not bot.is_closed():
        await bot.close()
    if _bot_task is not None:
        _bot_task.cancel()


# ---------- Schemas ----------
class GetJobResponse(BaseModel):
    id: int
    user_id: str
    description: Optional[str] = None
    status: str
    assigned_to: Optional[str] = None
    result_url: Optional[str] = None
    created_at: datetime


# ---------- Keep-alive ----------
@app.get("/", response_class=PlainTextResponse)
def index():
    return "Bot is running via Render."


@app.get("/health")
def health():
    return {"ok": True, "bot_ready": bool(bot is not None and bot.is_ready())}


# ---------- Jobs ----------
@app.get("/jobs/{job_id}", response_model=GetJobResponse)
def get_job(job_id: int):
    try:
        job = lifecycle.get_job(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail="job not found")
    except StoreError:
        raise HTTPException(status_code=503, detail="store unavailable")
    return GetJobResponse(
        id=job.id,
        user_id=job.user_id,
        description=job.description,
        status=job.status.value,
        assigned_to=job.assigned_to,
        result_url=job.result_url,
        created_at=job.created_at,
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
