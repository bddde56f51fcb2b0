"""Tests for guild join/leave bookkeeping."""
from unittest.mock import MagicMock

import discord
import pytest

from arc_countdown.guilds import GuildLifecycle, first_sendable_channel
from tests.fakes import FakeClient, FakeGuild, http_error


@pytest.fixture
def guild():
    g = FakeGuild(id=1, name="Raiders")
    g.add_channel(100, "rules", send_messages=False)
    g.add_channel(200, "general")
    return g


@pytest.fixture
def client(guild):
    return FakeClient([guild])


@pytest.fixture
def lifecycle(client, config_store):
    return GuildLifecycle(client, config_store, MagicMock(), MagicMock())


class TestJoin:
    def test_first_sendable_channel_skips_read_only(self, guild, client):
        assert first_sendable_channel(guild, client).name == "general"

    @pytest.mark.asyncio
    async def test_welcome_embed_is_sent(self, lifecycle, guild):
        await lifecycle.on_join(guild)

        general = guild.text_channels[1]
        embed = general.send.call_args.kwargs["embed"]
        assert embed.title == "⚙️ Arc Raiders Countdown Bot"
        assert "/countdown-setup" in embed.description
        guild.text_channels[0].send.assert_not_awaited()
        lifecycle.health.update_server_count.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_welcome_failure_is_logged_not_raised(self, lifecycle, guild):
        guild.text_channels[1].send.side_effect = http_error(discord.Forbidden, 403, 50013, "Missing Permissions")
        await lifecycle.on_join(guild)

    @pytest.mark.asyncio
    async def test_no_sendable_channel(self, lifecycle, guild):
        guild.text_channels[1].perms.send_messages = False
        await lifecycle.on_join(guild)
        assert all(ch.send.await_count == 0 for ch in guild.text_channels)


class TestLeave:
    @pytest.mark.asyncio
    async def test_leave_removes_config_and_job(self, lifecycle, guild, config_store):
        config_store.update(guild.id, channel_id="200")
        await lifecycle.on_leave(guild)

        assert config_store.count() == 0
        lifecycle.scheduler.stop.assert_called_once_with(guild.id)
        lifecycle.health.update_server_count.assert_called_once()


class TestReady:
    def test_orphans_are_cleaned_up(self, lifecycle, config_store):
        config_store.update("1", channel_id="200")
        config_store.update("99", channel_id="300")

        assert lifecycle.on_ready() == 1
        assert set(config_store.all()) == {"1"}
        lifecycle.health.update_server_count.assert_called_once_with(1)
