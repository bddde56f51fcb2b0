"""
Tiny HTTP health check for the hosting platform.

GET /health answers 200 with uptime, server count and memory usage. Every
other path or method is a 404. The server count is mirrored to
monitor-data.json so it survives restarts.
"""
import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import psutil
from aiohttp import web

from arc_countdown import config
from arc_countdown.logs import log_debug


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _default_monitor_data() -> dict:
    return {"servers": 0, "last_updated": _utc_iso()}


class HealthServer:
    def __init__(
        self,
        *,
        host: str = config.HEALTH_HOST,
        port: int = config.HEALTH_PORT,
        monitor_file: Optional[Path] = None,
    ):
        self.host = host
        self.port = port
        self.monitor_file = Path(monitor_file or config.MONITOR_FILE)
        self.started_at = time.monotonic()
        self.monitor_data = _default_monitor_data()
        self.runner: Optional[web.AppRunner] = None
        self._process = psutil.Process(os.getpid())

    # ==========================
    # MONITOR FILE
    # ==========================

    def load_monitor_data(self):
        if not self.monitor_file.exists():
            return
        try:
            with open(self.monitor_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"[HEALTH] Failed to load monitor data, using defaults: {type(e).__name__}: {e}")
            self.monitor_data = _default_monitor_data()
            return
        if isinstance(data, dict):
            self.monitor_data = data

    def save_monitor_data(self):
        self.monitor_data["last_updated"] = _utc_iso()
        try:
            with open(self.monitor_file, "w", encoding="utf-8") as f:
                json.dump(self.monitor_data, f, indent=2)
        except OSError as e:
            print(f"[HEALTH] Failed to save monitor data: {type(e).__name__}: {e}")

    def update_server_count(self, count: int):
        self.monitor_data["servers"] = int(count)
        self.save_monitor_data()
        log_debug(f"[HEALTH] Server count updated: {count}")

    def update_metrics(self, **metrics):
        self.monitor_data.update(metrics)
        self.save_monitor_data()

    # ==========================
    # HTTP
    # ==========================

    def health_data(self) -> dict:
        mem = self._process.memory_info()
        return {
            "status": "healthy",
            "uptime": round(time.monotonic() - self.started_at, 3),
            "servers": self.monitor_data.get("servers", 0),
            "memory": {"rss": mem.rss, "vms": mem.vms},
            "timestamp": _utc_iso(),
        }

    async def handle_health(self, request: web.Request) -> web.Response:
        try:
            data = self.health_data()
        except Exception as e:
            print(f"[HEALTH] Error handling health request: {type(e).__name__}: {e}")
            return web.json_response({"error": "Internal server error"}, status=500)
        log_debug("[HEALTH] Health check request served")
        return web.json_response(data)

    async def handle_not_found(self, request: web.Request) -> web.Response:
        return web.Response(status=404, text="Not Found")

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(config.HEALTH_ENDPOINT, self.handle_health, allow_head=False)
        # Anything else, including other methods on /health
        app.router.add_route("*", "/{tail:.*}", self.handle_not_found)
        return app

    async def start(self):
        self.load_monitor_data()
        self.runner = web.AppRunner(self.make_app())
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        print(f"[HEALTH] Health check server running on port {self.port}")

    async def stop(self):
        if self.runner is None:
            return
        await self.runner.cleanup()
        self.runner = None
        print("[HEALTH] Health check server stopped")

    def stats(self) -> dict:
        return {
            "port": self.port,
            "uptime": round(time.monotonic() - self.started_at, 3),
            "monitor_data": dict(self.monitor_data),
            "server_running": self.runner is not None,
        }
