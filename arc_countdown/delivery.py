import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import discord

from arc_countdown import config, retry
from arc_countdown.composer import MessageComposer, MessagePayload
from arc_countdown.config_store import ConfigStore
from arc_countdown.logs import log_throttled
from arc_countdown.timeutil import days_remaining, has_passed

DISCORD_MISSING_ACCESS = 50001


class DeliveryError(Exception):
    """A countdown could not be delivered to a guild."""


class ChannelUnavailable(DeliveryError):
    pass


class PermissionDenied(DeliveryError):
    pass


def access_lost(error: BaseException) -> bool:
    """True when the bot can no longer reach the target at all (not a permission hiccup)."""
    if isinstance(error, (ChannelUnavailable, discord.NotFound)):
        return True
    if isinstance(error, discord.Forbidden):
        return error.code == DISCORD_MISSING_ACCESS
    return False


def build_admin_notice(reason: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"⚠️ {config.GAME_NAME} Countdown Bot - Configuration Issue",
        description=(
            "I'm having trouble posting countdown messages in the configured channel.\n\n"
            f"**Error:** {reason}\n\n"
            "**Solutions:**\n"
            "• Check if I have permission to send messages in the channel\n"
            "• Verify the channel still exists\n"
            "• Re-run `/countdown-setup` to reconfigure\n"
            "• Make sure I haven't been removed from the server"
        )[:4096],
        color=config.COLOR_WARNING,
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_footer(text="This message will stop appearing once the issue is resolved")
    return embed


class DeliveryPipeline:
    def __init__(
        self,
        client: discord.Client,
        config_store: ConfigStore,
        composer: MessageComposer,
        release_date: datetime,
        *,
        now: Optional[Callable[[], datetime]] = None,
        on_evict: Optional[Callable[[str], object]] = None,
    ):
        self.client = client
        self.config_store = config_store
        self.composer = composer
        self.release_date = release_date
        self.now = now or (lambda: datetime.now(timezone.utc))
        # Called with the guild id after its configuration is removed
        self.on_evict = on_evict

    # ==========================
    # RESOLUTION
    # ==========================

    def _bot_member(self, guild) -> Optional[discord.Member]:
        if guild is None:
            return None
        if guild.me is not None:
            return guild.me
        if self.client.user is None:
            return None
        return guild.get_member(self.client.user.id)

    async def resolve_channel(self, channel_id):
        try:
            cid = int(channel_id)
        except (TypeError, ValueError):
            raise ChannelUnavailable(f"Channel with ID {channel_id} is not a valid channel id")

        channel = self.client.get_channel(cid)
        if channel is None:
            try:
                channel = await asyncio.wait_for(
                    self.client.fetch_channel(cid), timeout=config.HTTP_TIMEOUT_SECONDS
                )
            except (discord.NotFound, discord.Forbidden, discord.InvalidData) as e:
                raise ChannelUnavailable(
                    f"Channel with ID {cid} not found or bot doesn't have access ({type(e).__name__})"
                ) from e

        if channel is None or not hasattr(channel, "send") or getattr(channel, "guild", None) is None:
            raise ChannelUnavailable(f"Channel with ID {cid} not found or is not a server text channel")
        return channel

    def check_send_permission(self, channel):
        me = self._bot_member(channel.guild)
        if me is None:
            raise PermissionDenied(f"Couldn't resolve bot member for channel {channel.id}")
        perms = channel.permissions_for(me)
        if not perms.send_messages:
            raise PermissionDenied(f"Bot doesn't have permission to send messages in channel {channel.id}")

    async def _send(self, channel, payload: MessagePayload):
        await retry.send_discord_message(channel, embed=payload.to_embed())

    # ==========================
    # DELIVERY
    # ==========================

    async def deliver(self, guild_id) -> bool:
        """Post today's countdown for one guild. Never raises; returns True on success."""
        gid = str(guild_id)
        cfg = self.config_store.get(gid)
        if not cfg.is_configured:
            log_throttled(gid, "no_channel", f"[Guild {gid}] No channel configured, skipping countdown")
            return False

        now = self.now()
        if has_passed(self.release_date, now):
            print(f"[Guild {gid}] Game has launched, countdown messages stopped")
            return False

        days = days_remaining(self.release_date, now)
        print(f"[Guild {gid}] Posting countdown ({days} days remaining)")

        try:
            channel = await self.resolve_channel(cfg.channel_id)
            self.check_send_permission(channel)
            payload = await self.composer.compose(days, self.release_date)
            await self._send(channel, payload)
        except Exception as e:
            await self.handle_failure(gid, e)
            return False

        print(f"[Guild {gid}] Countdown posted. Days remaining: {days}")
        return True

    async def deliver_test(self, guild_id, phase: Optional[str] = None):
        """/countdown-test: post a preview now. Errors propagate to the command."""
        gid = str(guild_id)
        cfg = self.config_store.get(gid)
        if not cfg.is_configured:
            raise ChannelUnavailable("No channel configured. Use `/countdown-setup` first.")

        channel = await self.resolve_channel(cfg.channel_id)
        self.check_send_permission(channel)
        days = days_remaining(self.release_date, self.now())
        payload = await self.composer.compose_test(days, self.release_date, phase)
        await self._send(channel, payload)
        print(f"[Guild {gid}] Test countdown posted")

    # ==========================
    # FAILURE HANDLING
    # ==========================

    async def handle_failure(self, guild_id: str, error: BaseException):
        print(f"[Guild {guild_id}] Error posting countdown message: {type(error).__name__}: {error}")

        try:
            await self.notify_admins(guild_id, str(error) or type(error).__name__)
        except Exception as notify_error:
            print(f"[Guild {guild_id}] Failed to notify admins: {type(notify_error).__name__}: {notify_error}")

        if access_lost(error):
            print(f"[Guild {guild_id}] Removing server configuration due to access error")
            self.config_store.remove(guild_id)
            if self.on_evict is not None:
                self.on_evict(guild_id)

    async def _resolve_guild(self, guild_id: str):
        guild = self.client.get_guild(int(guild_id))
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(int(guild_id))
        except (discord.NotFound, discord.Forbidden):
            return None

    def _find_notice_channel(self, guild):
        me = self._bot_member(guild)
        if me is None:
            return None

        candidates = []
        if guild.system_channel is not None:
            candidates.append(guild.system_channel)
        candidates.extend(guild.text_channels)

        for ch in candidates:
            perms = ch.permissions_for(me)
            if perms.send_messages and perms.embed_links:
                return ch
        return None

    async def notify_admins(self, guild_id: str, reason: str) -> bool:
        """Post a diagnostic embed somewhere the bot can still write. Best effort."""
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            print(f"[Guild {guild_id}] Can't notify admins: guild not found")
            return False

        channel = self._find_notice_channel(guild)
        if channel is None:
            print(f"[Guild {guild_id}] Can't notify admins: no accessible channel for the error message")
            return False

        await retry.send_discord_message(channel, max_attempts=1, embed=build_admin_notice(reason))
        print(f"[Guild {guild_id}] Posted configuration issue notice in #{getattr(channel, 'name', channel.id)}")
        return True
