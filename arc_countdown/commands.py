from datetime import datetime, timezone
from typing import Callable, Optional

import discord
from discord import app_commands

from arc_countdown import config
from arc_countdown.composer import TEST_PHASE_DAYS
from arc_countdown.config_store import ConfigStore
from arc_countdown.delivery import DeliveryPipeline
from arc_countdown.scheduler import Scheduler
from arc_countdown.timeutil import (
    SUPPORTED_FORMATS,
    days_remaining,
    format_release_date,
    has_passed,
    validate_time_input,
)

PERMISSION_DENIED_MESSAGE = 'You need the "Manage Server" permission to use this command.'

PHASE_CHOICES = [
    app_commands.Choice(name="Early (60 days)", value="early"),
    app_commands.Choice(name="Mid (40 days)", value="mid"),
    app_commands.Choice(name="Final month (20 days)", value="final_month"),
    app_commands.Choice(name="Final week (10 days)", value="final_week"),
    app_commands.Choice(name="Final days (3 days)", value="final_days"),
]


async def _safe_ephemeral(interaction: discord.Interaction, content: str):
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)
    except discord.HTTPException as e:
        print(f"[COMMANDS] Could not reply to interaction: {type(e).__name__}: {e}")


def _log_command(interaction: discord.Interaction, name: str, action: str):
    print(f"[COMMANDS] /{name} in guild {interaction.guild_id} by {interaction.user.id}: {action}")


def build_love_embed() -> discord.Embed:
    embed = discord.Embed(
        title="🩵 Help cover server costs",
        description="Working on some cool new features for when the game is out <a:NODDERS:1081963012405071953>",
        color=config.COLOR_SUCCESS,
        timestamp=datetime.now(timezone.utc),
    )
    for label, address in config.DONATION_ADDRESSES:
        embed.add_field(name=label, value=f"```\n{address}\n```", inline=True)
    embed.set_footer(text="Much appreciated :)")
    return embed


class CountdownCommands:
    """Handlers behind the /countdown-* slash commands."""

    def __init__(
        self,
        config_store: ConfigStore,
        scheduler: Scheduler,
        delivery: DeliveryPipeline,
        release_date: datetime,
        *,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config_store = config_store
        self.scheduler = scheduler
        self.delivery = delivery
        self.release_date = release_date
        self.now = now or (lambda: datetime.now(timezone.utc))

    def _launched(self) -> bool:
        return has_passed(self.release_date, self.now())

    async def _send_launched(self, interaction: discord.Interaction):
        await interaction.response.send_message(
            f"🎉 {config.GAME_NAME} has already launched! Countdown messages have stopped.\n\n"
            f"Launch date: {format_release_date(self.release_date)}\n"
            f"Current time: {format_release_date(self.now())}\n\n"
            "*The bot may be updated with new features in the future!*",
            ephemeral=True,
        )

    # ---------------------------------------------------------
    # /countdown-setup
    # ---------------------------------------------------------
    async def setup(self, interaction: discord.Interaction, channel: str):
        if self._launched():
            await self._send_launched(interaction)
            return

        wanted = channel.strip().lstrip("#").lower()
        target = None
        for ch in interaction.guild.text_channels:
            if ch.name.lower() == wanted:
                target = ch
                break

        if target is None:
            await interaction.response.send_message(
                f'Channel "#{channel}" not found. Make sure the channel exists and I have access to it.',
                ephemeral=True,
            )
            return

        cfg = self.config_store.update(
            interaction.guild_id,
            channel_id=str(target.id),
            channel_name=target.name,
            post_time=config.DEFAULT_POST_TIME,
        )
        self.scheduler.schedule_guild(interaction.guild_id, cfg.post_time)
        _log_command(interaction, "countdown-setup", f"channel set to #{target.name}")

        await interaction.response.send_message(
            "Configuration complete!\n"
            f"Channel: #{target.name}\n"
            f"Time: {cfg.post_time} (UTC) - Use `/countdown-time` to change",
            ephemeral=True,
        )

    # ---------------------------------------------------------
    # /countdown-time
    # ---------------------------------------------------------
    async def time(self, interaction: discord.Interaction, time: str):
        if self._launched():
            await self._send_launched(interaction)
            return

        ok, error = validate_time_input(time)
        if not ok:
            await interaction.response.send_message(
                f"{error}\n\nSupported formats: {', '.join(SUPPORTED_FORMATS)}",
                ephemeral=True,
            )
            return

        post_time = time.strip()
        self.config_store.update(interaction.guild_id, post_time=post_time)
        self.scheduler.reschedule(interaction.guild_id, post_time)
        _log_command(interaction, "countdown-time", f"time updated to {post_time}")

        await interaction.response.send_message(
            f"Post time updated to {post_time} (UTC) and rescheduled immediately!",
            ephemeral=True,
        )

    # ---------------------------------------------------------
    # /countdown-status
    # ---------------------------------------------------------
    def status_text(self, guild_id) -> str:
        cfg = self.config_store.get(guild_id)
        channel = f"#{cfg.channel_name}" if cfg.channel_name else "Not configured"
        lines = [
            f"Channel: {channel}",
            f"Time: {cfg.post_time or config.DEFAULT_POST_TIME} (UTC)",
        ]

        next_run = self.scheduler.next_run(guild_id)
        if next_run is not None:
            lines.append(f"Next post: {discord.utils.format_dt(next_run, 'F')}")

        now = self.now()
        if has_passed(self.release_date, now):
            lines.append(f"{config.GAME_NAME} has launched 🎉")
        else:
            lines.append(f"Days remaining: {days_remaining(self.release_date, now)}")
        return "\n".join(lines)

    async def status(self, interaction: discord.Interaction):
        _log_command(interaction, "countdown-status", "status viewed")
        await interaction.response.send_message(self.status_text(interaction.guild_id), ephemeral=True)

    # ---------------------------------------------------------
    # /countdown-test
    # ---------------------------------------------------------
    async def test(self, interaction: discord.Interaction, phase: Optional[str] = None):
        if not self.config_store.is_configured(interaction.guild_id):
            await interaction.response.send_message(
                "No channel configured. Use `/countdown-setup` first.",
                ephemeral=True,
            )
            return

        if phase is not None and phase not in TEST_PHASE_DAYS:
            phase = None

        await interaction.response.send_message("Sending test message...", ephemeral=True)
        try:
            await self.delivery.deliver_test(interaction.guild_id, phase)
        except Exception as e:
            print(f"[COMMANDS] Error testing countdown message: {type(e).__name__}: {e}")
            await interaction.followup.send(f"❌ Error testing countdown message: {e}", ephemeral=True)
            return
        _log_command(interaction, "countdown-test", f"test message sent (phase={phase})")

    # ---------------------------------------------------------
    # /countdown-love
    # ---------------------------------------------------------
    async def love(self, interaction: discord.Interaction):
        _log_command(interaction, "countdown-love", "love command viewed")
        await interaction.response.send_message(embed=build_love_embed(), ephemeral=True)


# ==========================
# REGISTRATION
# ==========================

def register_commands(tree: app_commands.CommandTree, handlers: CountdownCommands):
    @tree.command(name="countdown-setup", description="Set countdown channel")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    @app_commands.describe(channel='Channel name to post countdown messages (e.g., "general")')
    async def countdown_setup(interaction: discord.Interaction, channel: str):
        await handlers.setup(interaction, channel)

    @tree.command(name="countdown-time", description="Set countdown post time in UTC")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    @app_commands.describe(time='Time to post daily in UTC (e.g., "3am", "15:00", "3:30pm")')
    async def countdown_time(interaction: discord.Interaction, time: str):
        await handlers.time(interaction, time)

    @tree.command(name="countdown-status", description="View current config")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    async def countdown_status(interaction: discord.Interaction):
        await handlers.status(interaction)

    @tree.command(name="countdown-test", description="Test countdown message")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    @app_commands.describe(phase="Preview a specific emoji phase instead of today's")
    @app_commands.choices(phase=PHASE_CHOICES)
    async def countdown_test(interaction: discord.Interaction, phase: Optional[app_commands.Choice[str]] = None):
        await handlers.test(interaction, phase.value if phase else None)

    @tree.command(name="countdown-love", description="Spread the love <3")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.guild_only()
    async def countdown_love(interaction: discord.Interaction):
        await handlers.love(interaction)

    @tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.MissingPermissions):
            await _safe_ephemeral(interaction, PERMISSION_DENIED_MESSAGE)
            return
        if isinstance(error, app_commands.CheckFailure):
            await _safe_ephemeral(interaction, "You can only use this command in a server.")
            return

        print(f"[APP_COMMAND_ERROR] {type(error).__name__}: {error}")
        await _safe_ephemeral(interaction, "Something went wrong running that command.")

    return [countdown_setup, countdown_time, countdown_status, countdown_test, countdown_love]
