from datetime import datetime, timezone
from typing import Iterable, Optional

import discord

from arc_countdown import config
from arc_countdown.config_store import ConfigStore
from arc_countdown.health import HealthServer
from arc_countdown.scheduler import Scheduler


def build_welcome_embed() -> discord.Embed:
    return discord.Embed(
        title=f"⚙️ {config.GAME_NAME} Countdown Bot",
        description=(
            "Thanks for adding me :)\n"
            "Run `/countdown-setup` to get started.\n\n"
            f"📖 [View on GitHub]({config.GITHUB_URL})"
        ),
        color=config.COLOR_COUNTDOWN,
        timestamp=datetime.now(timezone.utc),
    )


def _bot_member(guild: discord.Guild, client: discord.Client) -> Optional[discord.Member]:
    if guild.me is not None:
        return guild.me
    if client.user is None:
        return None
    return guild.get_member(client.user.id)


def first_sendable_channel(guild: discord.Guild, client: discord.Client):
    me = _bot_member(guild, client)
    if me is None:
        return None
    for ch in guild.text_channels:
        if ch.permissions_for(me).send_messages:
            return ch
    return None


class GuildLifecycle:
    """Join/leave bookkeeping: welcome message, config cleanup, server count."""

    def __init__(
        self,
        client: discord.Client,
        config_store: ConfigStore,
        scheduler: Scheduler,
        health: Optional[HealthServer] = None,
    ):
        self.client = client
        self.config_store = config_store
        self.scheduler = scheduler
        self.health = health

    def _update_server_count(self):
        if self.health is not None:
            self.health.update_server_count(len(self.client.guilds))

    async def on_join(self, guild: discord.Guild):
        print(f"[GUILD] JOINED {guild.name} ({guild.id})")
        self._update_server_count()

        channel = first_sendable_channel(guild, self.client)
        if channel is None:
            print(f"[GUILD] No channel to send a welcome message in {guild.name} ({guild.id})")
            return
        try:
            await channel.send(embed=build_welcome_embed())
        except discord.HTTPException as e:
            print(f"[GUILD] Error sending welcome message to {guild.id}: {type(e).__name__}: {e}")
            return
        print(f"[GUILD] Welcome message sent to {guild.name} ({guild.id})")

    async def on_leave(self, guild: discord.Guild):
        print(f"[GUILD] LEFT {guild.name} ({guild.id})")
        self._update_server_count()
        self.scheduler.stop(guild.id)
        if self.config_store.remove(guild.id):
            print(f"[GUILD] Removed configuration for {guild.name} ({guild.id})")

    def cleanup_orphans(self, live_guild_ids: Optional[Iterable] = None) -> int:
        if live_guild_ids is None:
            live_guild_ids = [g.id for g in self.client.guilds]
        return self.config_store.cleanup_orphans(live_guild_ids)

    def on_ready(self):
        self._update_server_count()
        return self.cleanup_orphans()
