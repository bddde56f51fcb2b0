"""
Pytest configuration and fixtures.

Everything here works offline: files go to tmp_path, Reddit is an AsyncMock
and Discord is the fakes in tests/fakes.py.
"""
import random
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from arc_countdown.composer import MessageComposer
from arc_countdown.config_store import ConfigStore
from arc_countdown.emojis import EmojiSelector
from arc_countdown.social import SocialMessageQueue

# =============================================================================
# CLOCK
# =============================================================================

RELEASE_DATE = datetime(2025, 10, 30, tzinfo=timezone.utc)
BEFORE_RELEASE = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)  # 29 days out
AFTER_RELEASE = datetime(2025, 11, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def release_date():
    return RELEASE_DATE


@pytest.fixture
def before_release():
    return lambda: BEFORE_RELEASE


@pytest.fixture
def after_release():
    return lambda: AFTER_RELEASE


# =============================================================================
# STORAGE
# =============================================================================

@pytest.fixture
def config_store(tmp_path):
    return ConfigStore(tmp_path / "server-config.json", max_backups=3)


@pytest.fixture
def social_queue(tmp_path):
    return SocialMessageQueue(tmp_path / "next-message.txt")


# =============================================================================
# COMPOSER
# =============================================================================

@pytest.fixture
def fake_reddit():
    reddit = MagicMock()
    reddit.get_top_post_cached = AsyncMock(return_value=None)
    return reddit


@pytest.fixture
def composer(fake_reddit, social_queue):
    return MessageComposer(EmojiSelector(random.Random(1234)), fake_reddit, social_queue)


# =============================================================================
# RETRY
# =============================================================================

@pytest.fixture
def no_sleep(monkeypatch):
    """Record backoff delays instead of actually sleeping."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("arc_countdown.retry.asyncio.sleep", fake_sleep)
    return delays
