"""
Tests for the Discord wiring. Nothing here talks to Discord.
"""
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock

import discord
import pytest

from bot_client import BotConfigError, build_bot
from commands import CommandRouter
from lifecycle import JobLifecycle
from settings import Settings


def _settings(**overrides):
    values = dict(discord_token="token", client_id="1234", guild_id="5678")
    values.update(overrides)
    return Settings(**values)


def _interaction(user_id=42):
    state = {"done": False}

    async def defer(**kwargs):
        state["done"] = True

    return SimpleNamespace(
        user=SimpleNamespace(id=user_id),
        response=SimpleNamespace(
            send_message=AsyncMock(),
            defer=AsyncMock(side_effect=defer),
            is_done=lambda: state["done"],
        ),
        followup=SimpleNamespace(send=AsyncMock()),
    )


class TestBuildBot:
    def test_missing_variables_are_named(self, router):
        with pytest.raises(BotConfigError, match="DISCORD_TOKEN, GUILD_ID"):
            build_bot(_settings(discord_token="", guild_id=""), router)

    def test_non_numeric_ids(self, router):
        with pytest.raises(BotConfigError, match="numeric"):
            build_bot(_settings(guild_id="my-guild"), router)

    @pytest.mark.asyncio
    async def test_targets_configured_guild(self, router):
        bot = build_bot(_settings(), router)
        assert bot.guild.id == 5678
        assert bot.application_id == 1234


class TestCommandTree:
    @pytest.mark.asyncio
    async def test_registered_commands(self, router):
        bot = build_bot(_settings(), router)
        names = sorted(c.name for c in bot.tree.get_commands())
        assert names == ["claim", "complete", "queue", "submit-render"]
        assert sorted(router.command_names) == names

    @pytest.mark.asyncio
    async def test_staff_commands_need_manage_guild(self, router):
        bot = build_bot(_settings(), router)
        for name in ("queue", "claim", "complete"):
            perms = bot.tree.get_command(name).default_permissions
            assert perms is not None and perms.manage_guild
        assert bot.tree.get_command("submit-render").default_permissions is None

    @pytest.mark.asyncio
    async def test_options(self, router):
        bot = build_bot(_settings(), router)

        submit = bot.tree.get_command("submit-render")
        (description,) = submit.parameters
        assert description.name == "description"
        assert description.required
        assert description.type is discord.AppCommandOptionType.string

        complete = bot.tree.get_command("complete")
        params = {p.name: p for p in complete.parameters}
        assert params["job_id"].type is discord.AppCommandOptionType.integer
        assert params["result_url"].type is discord.AppCommandOptionType.string
        assert all(p.required for p in params.values())

    @pytest.mark.asyncio
    async def test_submit_callback_replies_through_router(self, router, store):
        bot = build_bot(_settings(), router)
        interaction = _interaction(user_id=777)

        await bot.tree.get_command("submit-render").callback(interaction, description="intro")

        interaction.response.send_message.assert_awaited_once_with(
            "Renderjob aangemaakt! ID **1**", ephemeral=False
        )
        assert store.get(1).user_id == "777"

    @pytest.mark.asyncio
    async def test_claim_callback_sends_ephemeral_error(self, router):
        bot = build_bot(_settings(), router)
        interaction = _interaction()

        await bot.tree.get_command("claim").callback(interaction, job_id=31)

        interaction.response.send_message.assert_awaited_once_with(
            "Job **31** bestaat niet.", ephemeral=True
        )
        interaction.response.defer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slow_command_is_deferred_then_followed_up(self, store, monkeypatch):
        insert = store.insert

        def slow_insert(*args):
            time.sleep(0.3)
            return insert(*args)

        monkeypatch.setattr(store, "insert", slow_insert)
        bot = build_bot(_settings(), CommandRouter(JobLifecycle(store), timeout=0.05))
        interaction = _interaction()

        await bot.tree.get_command("submit-render").callback(interaction, description="intro")

        interaction.response.defer.assert_awaited_once_with(thinking=True)
        interaction.response.send_message.assert_not_awaited()
        interaction.followup.send.assert_awaited_once_with(
            "Renderjob aangemaakt! ID **1**", ephemeral=False
        )
        assert len(store.list_open()) == 1
