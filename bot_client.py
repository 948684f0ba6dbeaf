# bot_client.py
import logging
from typing import Any, Dict, Optional

import discord
from discord import app_commands

from commands import CommandRouter
from settings import Settings

logger = logging.getLogger(__name__)


class BotConfigError(RuntimeError):
    pass


async def _run(
    router: CommandRouter,
    interaction: discord.Interaction,
    name: str,
    options: Optional[Dict[str, Any]] = None,
) -> None:
    # a slow command gets a "thinking..." placeholder so Discord keeps the
    # interaction open, and its result is sent as a followup
    reply = await router.dispatch(
        name,
        str(interaction.user.id),
        options,
        on_slow=lambda: interaction.response.defer(thinking=True),
    )
    if interaction.response.is_done():
        await interaction.followup.send(reply.content, ephemeral=reply.ephemeral)
    else:
        await interaction.response.send_message(reply.content, ephemeral=reply.ephemeral)


def register_commands(tree: app_commands.CommandTree, router: CommandRouter) -> None:
    """
    Declare the slash commands on `tree`. Each one hands its options to the
    router and sends back whatever Reply it gets.
    Staff commands default to the Manage Server permission.
    """

    @tree.command(name="submit-render", description="Stuur een renderjob in")
    @app_commands.describe(description="Job beschrijving")
    async def submit_render(interaction: discord.Interaction, description: str):
        await _run(router, interaction, "submit-render", {"description": description})

    @tree.command(name="queue", description="Toon openstaande renderjobs (staff)")
    @app_commands.default_permissions(manage_guild=True)
    async def queue(interaction: discord.Interaction):
        await _run(router, interaction, "queue")

    @tree.command(name="claim", description="Claim een renderjob (staff)")
    @app_commands.describe(job_id="Job ID")
    @app_commands.default_permissions(manage_guild=True)
    async def claim(interaction: discord.Interaction, job_id: int):
        await _run(router, interaction, "claim", {"job_id": job_id})

    @tree.command(name="complete", description="Markeer een renderjob als voltooid")
    @app_commands.describe(job_id="Job ID", result_url="Resultaat link")
    @app_commands.default_permissions(manage_guild=True)
    async def complete(interaction: discord.Interaction, job_id: int, result_url: str):
        await _run(router, interaction, "complete", {"job_id": job_id, "result_url": result_url})


class RenderBot(discord.Client):
    def __init__(self, router: CommandRouter, *, guild_id: int, application_id: Optional[int] = None):
        super().__init__(intents=discord.Intents.default(), application_id=application_id)
        self.router = router
        self.guild = discord.Object(id=guild_id)
        self.tree = app_commands.CommandTree(self)
        register_commands(self.tree, router)

    async def setup_hook(self) -> None:
        # guild commands show up immediately, global ones can take an hour
        self.tree.copy_global_to(guild=self.guild)
        synced = await self.tree.sync(guild=self.guild)
        logger.info("Registered %d slash commands in guild %s", len(synced), self.guild.id)

    async def on_ready(self) -> None:
        logger.info("Bot ingelogd als %s", self.user)


def build_bot(cfg: Settings, router: CommandRouter) -> RenderBot:
    missing = cfg.missing()
    if missing:
        raise BotConfigError(f"{', '.join(missing)} not set")
    try:
        guild_id = int(cfg.guild_id)
        application_id = int(cfg.client_id)
    except ValueError as e:
        raise BotConfigError(f"GUILD_ID and CLIENT_ID must be numeric: {e}") from e
    return RenderBot(router, guild_id=guild_id, application_id=application_id)
