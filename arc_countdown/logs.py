import time
from typing import Dict, Tuple

from arc_countdown import config

LOG_THROTTLE_SECONDS = 60 * 30  # 30 minutes
_last_log: Dict[Tuple[str, str], float] = {}  # (guild_id, code) -> last_time


def log_throttled(guild_id, code: str, msg: str) -> bool:
    """Print msg at most once per LOG_THROTTLE_SECONDS for a (guild, code) pair."""
    key = (str(guild_id), code)
    now = time.time()
    last = _last_log.get(key, 0)
    if now - last >= LOG_THROTTLE_SECONDS:
        _last_log[key] = now
        print(msg)
        return True
    return False


def log_debug(msg: str):
    if config.LOG_DEBUG:
        print(msg)
