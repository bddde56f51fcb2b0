"""
Per-guild countdown configuration, persisted as JSON.

File layout (camelCase keys so existing files keep working):

{
  "servers": {
    "guild_id_str": {
      "channelId": str | None,
      "channelName": str | None,
      "postTime": "12:00"
    }
  }
}

Every save first copies the current file to
<stem>-backup-<epochMillis>.json and keeps only the newest N of those.
"""
import json
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional

from arc_countdown import config


@dataclass(frozen=True)
class ServerConfig:
    guild_id: str
    channel_id: Optional[str] = None
    channel_name: Optional[str] = None
    post_time: str = config.DEFAULT_POST_TIME

    @property
    def is_configured(self) -> bool:
        return bool(self.channel_id)


_FIELD_KEYS = {
    "channel_id": "channelId",
    "channel_name": "channelName",
    "post_time": "postTime",
}


def _to_config(guild_id: str, raw: dict) -> ServerConfig:
    if not isinstance(raw, dict):
        raw = {}
    channel_id = raw.get("channelId")
    return ServerConfig(
        guild_id=str(guild_id),
        channel_id=str(channel_id) if channel_id else None,
        channel_name=raw.get("channelName") or None,
        post_time=raw.get("postTime") or config.DEFAULT_POST_TIME,
    )


class ConfigStore:
    def __init__(self, path: Optional[Path] = None, *, max_backups: Optional[int] = None):
        self.path = Path(path or config.CONFIG_FILE)
        self.max_backups = config.MAX_CONFIG_BACKUPS if max_backups is None else max_backups
        self._lock = Lock()

    @property
    def backup_prefix(self) -> str:
        return f"{self.path.stem}-backup-"

    # ==========================
    # FILE I/O
    # ==========================

    def _load(self) -> dict:
        data = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError:
                # Keep the broken file around instead of overwriting it on next save
                try:
                    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
                    corrupt_path = self.path.with_suffix(self.path.suffix + f".corrupt.{ts}")
                    self.path.rename(corrupt_path)
                    print(f"[CONFIG] Config file was invalid JSON. Renamed to: {corrupt_path.name}")
                except OSError as e:
                    print(f"[CONFIG] Config file was invalid JSON and could not be renamed: {e}")
                data = {}
            except OSError as e:
                print(f"[CONFIG] Error loading server configs: {type(e).__name__}: {e}")
                data = {}

        if not isinstance(data, dict):
            data = {}
        if not isinstance(data.get("servers"), dict):
            data["servers"] = {}
        return data

    def _save(self, data: dict) -> bool:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._create_backup()

                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
                return True
            except OSError as e:
                # Not retried: the next update rewrites the whole file anyway
                print(f"[CONFIG] Error saving server configs: {type(e).__name__}: {e}")
                return False

    def _create_backup(self):
        if not self.path.exists():
            return
        backup = self.path.with_name(f"{self.backup_prefix}{int(time.time() * 1000)}{self.path.suffix}")
        try:
            backup.write_bytes(self.path.read_bytes())
        except OSError as e:
            print(f"[CONFIG] Failed to create configuration backup: {e}")
            return
        self._cleanup_old_backups()

    def _backup_stamp(self, p: Path) -> Optional[int]:
        stamp = p.name[len(self.backup_prefix):]
        if self.path.suffix:
            stamp = stamp[:-len(self.path.suffix)]
        return int(stamp) if stamp.isdigit() else None

    def list_backups(self) -> List[Path]:
        """Backups newest first."""
        stamped = []
        for p in self.path.parent.glob(f"{self.backup_prefix}*{self.path.suffix}"):
            stamp = self._backup_stamp(p)
            if stamp is not None:
                stamped.append((stamp, p))
        stamped.sort(reverse=True)
        return [p for _, p in stamped]

    def _cleanup_old_backups(self):
        for old in self.list_backups()[self.max_backups:]:
            try:
                old.unlink()
            except OSError as e:
                print(f"[CONFIG] Failed to delete old backup {old.name}: {e}")

    # ==========================
    # PUBLIC API
    # ==========================

    def get(self, guild_id) -> ServerConfig:
        gid = str(guild_id)
        raw = self._load()["servers"].get(gid) or {}
        return _to_config(gid, raw)

    def update(self, guild_id, **fields) -> ServerConfig:
        unknown = set(fields) - set(_FIELD_KEYS)
        if unknown:
            raise TypeError(f"Unknown server config field(s): {', '.join(sorted(unknown))}")

        gid = str(guild_id)
        data = self._load()
        entry = data["servers"].setdefault(gid, {})
        for name, value in fields.items():
            entry[_FIELD_KEYS[name]] = str(value) if name == "channel_id" and value is not None else value

        self._save(data)
        print(f"[CONFIG] Server configuration updated for guild {gid}: {fields}")
        return _to_config(gid, entry)

    def remove(self, guild_id) -> bool:
        gid = str(guild_id)
        data = self._load()
        if gid not in data["servers"]:
            return False
        del data["servers"][gid]
        self._save(data)
        print(f"[CONFIG] Server configuration removed for guild {gid}")
        return True

    def all(self) -> Dict[str, ServerConfig]:
        return {gid: _to_config(gid, raw) for gid, raw in self._load()["servers"].items()}

    def configured_guild_ids(self) -> List[str]:
        return [gid for gid, cfg in self.all().items() if cfg.is_configured]

    def is_configured(self, guild_id) -> bool:
        return self.get(guild_id).is_configured

    def count(self) -> int:
        return len(self._load()["servers"])

    def cleanup_orphans(self, live_guild_ids: Iterable) -> int:
        """Drop stored guilds the bot is no longer a member of."""
        live = {str(g) for g in live_guild_ids}
        data = self._load()

        orphans = [gid for gid in data["servers"] if gid not in live]
        for gid in orphans:
            print(f"[CONFIG] Removing orphaned configuration for guild {gid} (bot no longer in server)")
            del data["servers"][gid]

        if orphans:
            self._save(data)
            print(f"[CONFIG] Cleaned up {len(orphans)} orphaned server configuration(s)")
        return len(orphans)

    def stats(self) -> dict:
        configs = self.all()
        return {
            "total_servers": len(configs),
            "configured_servers": sum(1 for c in configs.values() if c.is_configured),
            "servers": [
                {
                    "guild_id": c.guild_id,
                    "channel_name": c.channel_name,
                    "post_time": c.post_time,
                    "is_configured": c.is_configured,
                }
                for c in configs.values()
            ],
        }
