from datetime import datetime

import discord
from discord.ext import commands

from arc_countdown import VERSION, config
from arc_countdown.commands import CountdownCommands, register_commands
from arc_countdown.composer import MessageComposer
from arc_countdown.config_store import ConfigStore
from arc_countdown.delivery import DeliveryPipeline
from arc_countdown.emojis import EmojiSelector
from arc_countdown.guilds import GuildLifecycle
from arc_countdown.health import HealthServer
from arc_countdown.reddit import RedditClient
from arc_countdown.scheduler import Scheduler
from arc_countdown.social import SocialMessageQueue
from arc_countdown.timeutil import days_remaining, format_release_date, parse_release_date

# ==========================
# DISCORD SETUP
# ==========================

intents = discord.Intents.default()


class CountdownBot(commands.Bot):
    def __init__(self, release_date: datetime, *, start_health: bool = True):
        super().__init__(command_prefix="!", intents=intents)
        self.release_date = release_date
        self.start_health = start_health

        self.config_store = ConfigStore()
        self.reddit = RedditClient()
        self.composer = MessageComposer(EmojiSelector(), self.reddit, SocialMessageQueue())
        # The scheduler calls delivery.deliver, and delivery drops the job of an evicted guild
        self.delivery = DeliveryPipeline(
            self, self.config_store, self.composer, release_date, on_evict=self._stop_guild_job
        )
        self.scheduler = Scheduler(self.config_store, self.delivery.deliver, release_date)
        self.health = HealthServer()
        self.lifecycle = GuildLifecycle(self, self.config_store, self.scheduler, self.health)
        self.handlers = CountdownCommands(self.config_store, self.scheduler, self.delivery, release_date)

        register_commands(self.tree, self.handlers)
        self._scheduled_once = False

    def _stop_guild_job(self, guild_id: str):
        self.scheduler.stop(guild_id)

    async def setup_hook(self):
        if self.start_health:
            try:
                await self.health.start()
            except OSError as e:
                print(f"[HEALTH] Could not start health server on port {self.health.port}: {e}")

        try:
            await self.tree.sync()
            print(f"Slash commands synced (setup_hook). [{VERSION}]")
        except Exception as e:
            print(f"Error syncing commands (setup_hook): {e}")

    async def on_ready(self):
        print(f"Logged in as {self.user} (ID: {self.user.id}) [{VERSION}]")
        print(
            f"Release date: {format_release_date(self.release_date)} "
            f"({days_remaining(self.release_date)} days remaining)"
        )

        self.lifecycle.on_ready()

        # on_ready fires again after reconnects; jobs survive those
        if not self._scheduled_once:
            self.scheduler.schedule_all()
            self._scheduled_once = True

    async def on_guild_join(self, guild: discord.Guild):
        await self.lifecycle.on_join(guild)

    async def on_guild_remove(self, guild: discord.Guild):
        await self.lifecycle.on_leave(guild)

    async def close(self):
        print("[BOT] Shutting down...")
        self.scheduler.stop_all()
        await self.health.stop()
        await self.reddit.close()
        await super().close()


# ==========================
# RUN
# ==========================

def main():
    token = config.require_token()
    release_date = parse_release_date(config.RELEASE_DATE_RAW)
    bot = CountdownBot(release_date)
    bot.run(token)


if __name__ == "__main__":
    main()
