"""Tests for the /countdown-* slash command handlers and their registration."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from discord import app_commands

from arc_countdown import config
from arc_countdown.commands import (
    PERMISSION_DENIED_MESSAGE,
    CountdownCommands,
    build_love_embed,
    register_commands,
)
from tests.fakes import FakeGuild, FakeInteraction

GUILD_ID = 1


@pytest.fixture
def guild():
    g = FakeGuild(id=GUILD_ID)
    g.add_channel(100, "general")
    g.add_channel(200, "Countdown")
    return g


@pytest.fixture
def interaction(guild):
    return FakeInteraction(guild=guild)


@pytest.fixture
def scheduler():
    s = MagicMock()
    s.next_run.return_value = None
    return s


@pytest.fixture
def delivery():
    d = MagicMock()
    d.deliver_test = AsyncMock()
    return d


@pytest.fixture
def make_handlers(config_store, scheduler, delivery, release_date):
    def factory(now):
        return CountdownCommands(config_store, scheduler, delivery, release_date, now=now)

    return factory


class TestSetup:
    @pytest.mark.asyncio
    async def test_finds_channel_case_insensitively(
        self, make_handlers, interaction, config_store, scheduler, before_release
    ):
        await make_handlers(before_release).setup(interaction, "#countdown")

        cfg = config_store.get(GUILD_ID)
        assert cfg.channel_id == "200"
        assert cfg.channel_name == "Countdown"
        assert cfg.post_time == "12:00"
        scheduler.schedule_guild.assert_called_once_with(GUILD_ID, "12:00")
        assert interaction.last_reply().startswith("Configuration complete!")
        assert interaction.response.send_message.call_args.kwargs["ephemeral"] is True

    @pytest.mark.asyncio
    async def test_unknown_channel_changes_nothing(
        self, make_handlers, interaction, config_store, scheduler, before_release
    ):
        await make_handlers(before_release).setup(interaction, "nope")

        assert interaction.last_reply() == (
            'Channel "#nope" not found. Make sure the channel exists and I have access to it.'
        )
        assert config_store.count() == 0
        scheduler.schedule_guild.assert_not_called()

    @pytest.mark.asyncio
    async def test_after_release_replies_launched(self, make_handlers, interaction, config_store, after_release):
        await make_handlers(after_release).setup(interaction, "general")
        assert "has already launched" in interaction.last_reply()
        assert config_store.count() == 0


class TestTime:
    @pytest.mark.asyncio
    async def test_updates_and_reschedules(self, make_handlers, interaction, config_store, scheduler, before_release):
        config_store.update(GUILD_ID, channel_id="200", channel_name="Countdown")
        await make_handlers(before_release).time(interaction, "3pm")

        assert config_store.get(GUILD_ID).post_time == "3pm"
        scheduler.reschedule.assert_called_once_with(GUILD_ID, "3pm")
        assert interaction.last_reply() == "Post time updated to 3pm (UTC) and rescheduled immediately!"

    @pytest.mark.asyncio
    async def test_invalid_time_changes_nothing(
        self, make_handlers, interaction, config_store, scheduler, before_release
    ):
        config_store.update(GUILD_ID, channel_id="200")
        await make_handlers(before_release).time(interaction, "teatime")

        assert config_store.get(GUILD_ID).post_time == "12:00"
        scheduler.reschedule.assert_not_called()
        reply = interaction.last_reply()
        assert 'Invalid time format: "teatime"' in reply
        assert "Supported formats:" in reply

    @pytest.mark.asyncio
    async def test_after_release_replies_launched(self, make_handlers, interaction, scheduler, after_release):
        await make_handlers(after_release).time(interaction, "3pm")
        assert "has already launched" in interaction.last_reply()
        scheduler.reschedule.assert_not_called()


class TestStatus:
    @pytest.mark.asyncio
    async def test_unconfigured(self, make_handlers, interaction, before_release):
        await make_handlers(before_release).status(interaction)
        assert interaction.last_reply() == "Channel: Not configured\nTime: 12:00 (UTC)\nDays remaining: 29"

    @pytest.mark.asyncio
    async def test_configured_with_next_run(
        self, make_handlers, interaction, config_store, scheduler, before_release
    ):
        config_store.update(GUILD_ID, channel_id="200", channel_name="Countdown", post_time="3pm")
        scheduler.next_run.return_value = datetime(2025, 10, 1, 15, 0, tzinfo=timezone.utc)

        await make_handlers(before_release).status(interaction)
        reply = interaction.last_reply()
        assert reply.startswith("Channel: #Countdown\nTime: 3pm (UTC)\nNext post: <t:")
        assert reply.endswith("Days remaining: 29")

    def test_after_launch(self, make_handlers, after_release):
        assert make_handlers(after_release).status_text(GUILD_ID).endswith("Arc Raiders has launched 🎉")


class TestTestCommand:
    @pytest.mark.asyncio
    async def test_requires_setup(self, make_handlers, interaction, delivery, before_release):
        await make_handlers(before_release).test(interaction)
        assert interaction.last_reply() == "No channel configured. Use `/countdown-setup` first."
        delivery.deliver_test.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_preview(self, make_handlers, interaction, config_store, delivery, before_release):
        config_store.update(GUILD_ID, channel_id="200")
        await make_handlers(before_release).test(interaction, "mid")

        assert interaction.last_reply() == "Sending test message..."
        delivery.deliver_test.assert_awaited_once_with(GUILD_ID, "mid")
        interaction.followup.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reports_errors(self, make_handlers, interaction, config_store, delivery, before_release):
        config_store.update(GUILD_ID, channel_id="200")
        delivery.deliver_test.side_effect = RuntimeError("channel vanished")
        await make_handlers(before_release).test(interaction)

        interaction.followup.send.assert_awaited_once_with(
            "❌ Error testing countdown message: channel vanished", ephemeral=True
        )


class TestLove:
    @pytest.mark.asyncio
    async def test_love_embed(self, make_handlers, interaction, before_release):
        await make_handlers(before_release).love(interaction)
        embed = interaction.response.send_message.call_args.kwargs["embed"]
        assert embed.title == "🩵 Help cover server costs"
        assert [f.name for f in embed.fields] == [label for label, _ in config.DONATION_ADDRESSES]

    def test_addresses_are_code_blocks(self):
        embed = build_love_embed()
        assert all(f.value.startswith("```\n") for f in embed.fields)


class TestRegistration:
    @pytest.fixture
    def tree(self, make_handlers, before_release):
        client = discord.Client(intents=discord.Intents.none())
        tree = app_commands.CommandTree(client)
        register_commands(tree, make_handlers(before_release))
        return tree

    def test_registers_all_commands(self, tree):
        names = sorted(c.name for c in tree.get_commands())
        assert names == [
            "countdown-love",
            "countdown-setup",
            "countdown-status",
            "countdown-test",
            "countdown-time",
        ]

    def test_commands_require_manage_server(self, tree):
        for command in tree.get_commands():
            assert command.checks, command.name
            assert command.guild_only, command.name

    @pytest.mark.asyncio
    async def test_missing_permission_reply(self, tree, interaction):
        await tree.on_error(interaction, app_commands.MissingPermissions(["manage_guild"]))
        interaction.response.send_message.assert_awaited_once_with(PERMISSION_DENIED_MESSAGE, ephemeral=True)
