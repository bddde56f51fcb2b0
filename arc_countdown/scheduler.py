"""
One daily discord.ext.tasks loop per configured guild, fired in UTC.

Jobs are never edited in place: every change cancels the guild's loop and
starts a fresh one.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

from discord.ext import tasks

from arc_countdown.config_store import ConfigStore
from arc_countdown.timeutil import InvalidTimeFormat, daily_time, has_passed, parse_time, time_to_cron


@dataclass
class ScheduledJob:
    guild_id: str
    post_time: str
    hour: int
    minute: int
    cron: str
    loop: tasks.Loop

    def destroy(self):
        self.loop.cancel()

    @property
    def running(self) -> bool:
        return self.loop.is_running()

    @property
    def next_run(self) -> Optional[datetime]:
        return self.loop.next_iteration


class Scheduler:
    def __init__(
        self,
        config_store: ConfigStore,
        deliver: Callable[[str], Awaitable[None]],
        release_date: datetime,
        *,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config_store = config_store
        self.deliver = deliver
        self.release_date = release_date
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.jobs: Dict[str, ScheduledJob] = {}

    async def _run_job(self, guild_id: str):
        try:
            await self.deliver(guild_id)
        except Exception as e:
            # deliver() isolates its own failures; this is the last line for one guild
            print(f"[SCHEDULER] Job for guild {guild_id} crashed: {type(e).__name__}: {e}")

    def _build_loop(self, guild_id: str, post_time: str) -> tasks.Loop:
        async def countdown_job():
            await self._run_job(guild_id)

        return tasks.loop(time=daily_time(post_time))(countdown_job)

    def schedule_all(self) -> int:
        now = self.now()
        if has_passed(self.release_date, now):
            print(
                "[SCHEDULER] Release date has passed, skipping countdown scheduling "
                f"(launch {self.release_date.isoformat()}, now {now.isoformat()})"
            )
            return 0

        for guild_id, cfg in self.config_store.all().items():
            if cfg.is_configured:
                self.schedule_guild(guild_id, cfg.post_time)
        print(f"[SCHEDULER] {len(self.jobs)} countdown job(s) active")
        return len(self.jobs)

    def schedule_guild(self, guild_id, post_time: str) -> Optional[ScheduledJob]:
        gid = str(guild_id)
        self.stop(gid)

        try:
            hour, minute = parse_time(post_time)
        except InvalidTimeFormat as e:
            print(f"[SCHEDULER] Failed to schedule guild {gid}: {e}")
            return None

        loop = self._build_loop(gid, post_time)
        job = ScheduledJob(
            guild_id=gid,
            post_time=post_time,
            hour=hour,
            minute=minute,
            cron=time_to_cron(post_time),
            loop=loop,
        )
        self.jobs[gid] = job
        loop.start()
        print(f"[SCHEDULER] Scheduled countdown for guild {gid} at {post_time} UTC ({job.cron})")
        return job

    def reschedule(self, guild_id, new_time: str) -> Optional[ScheduledJob]:
        """Swap the guild's job for one at new_time. Unconfigured guilds just lose their job."""
        gid = str(guild_id)
        cfg = self.config_store.get(gid)
        if not cfg.is_configured:
            self.stop(gid)
            return None
        if has_passed(self.release_date, self.now()):
            self.stop(gid)
            return None
        job = self.schedule_guild(gid, new_time)
        if job is not None:
            print(f"[SCHEDULER] Updated schedule for guild {gid} to {new_time}")
        return job

    def stop(self, guild_id) -> bool:
        job = self.jobs.pop(str(guild_id), None)
        if job is None:
            return False
        job.destroy()
        print(f"[SCHEDULER] Stopped countdown job for guild {guild_id}")
        return True

    def stop_all(self):
        for gid in list(self.jobs):
            self.stop(gid)
        print("[SCHEDULER] All countdown jobs stopped")

    def next_run(self, guild_id) -> Optional[datetime]:
        job = self.jobs.get(str(guild_id))
        return job.next_run if job else None

    def stats(self) -> dict:
        return {
            "active_jobs": len(self.jobs),
            "servers": [
                {
                    "guild_id": job.guild_id,
                    "post_time": job.post_time,
                    "cron": job.cron,
                    "running": job.running,
                    "next_run": job.next_run.isoformat() if job.next_run else None,
                }
                for job in self.jobs.values()
            ],
        }
