"""
Top post of the day from r/arcraiders, used to decorate the countdown.

Everything here degrades to None: the countdown must still post when Reddit
is down, credentials are missing, or the top post isn't suitable.
"""
import asyncio
import html
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from arc_countdown import config, retry
from arc_countdown.logs import log_debug


@dataclass(frozen=True)
class RedditPost:
    title: str
    url: str
    score: int
    comments: int
    media_url: Optional[str] = None
    media_type: Optional[str] = None  # "image" | "video" | None
    subreddit: Optional[str] = None
    author: Optional[str] = None


@dataclass
class AccessToken:
    token: str
    expires_at: float  # time.time() epoch seconds

    def valid(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) < self.expires_at


_MISSING = object()


def is_valid_post(post_data: Dict[str, Any], min_title_length: int = config.REDDIT_MIN_TITLE_LENGTH) -> bool:
    if post_data.get("over_18") or post_data.get("spoiler"):
        return False
    title = post_data.get("title") or ""
    return len(title) >= min_title_length


def process_post_data(post_data: Dict[str, Any]) -> RedditPost:
    media_url = None
    media_type = None

    video = ((post_data.get("media") or {}).get("reddit_video") or {}).get("fallback_url")
    images = (post_data.get("preview") or {}).get("images") or []
    image = ((images[0] if images else {}).get("source") or {}).get("url")

    if video:
        media_url, media_type = video, "video"
    elif image:
        media_url, media_type = html.unescape(image), "image"

    return RedditPost(
        title=post_data.get("title", ""),
        url=f"https://reddit.com{post_data.get('permalink', '')}",
        score=int(post_data.get("score") or 0),
        comments=int(post_data.get("num_comments") or 0),
        media_url=media_url,
        media_type=media_type,
        subreddit=post_data.get("subreddit"),
        author=post_data.get("author"),
    )


class RedditClient:
    def __init__(
        self,
        *,
        client_id: str = config.REDDIT_CLIENT_ID,
        client_secret: str = config.REDDIT_CLIENT_SECRET,
        username: str = config.REDDIT_USERNAME,
        password: str = config.REDDIT_PASSWORD,
        subreddit: str = config.REDDIT_SUBREDDIT,
        retry_attempts: int = config.REDDIT_RETRY_ATTEMPTS,
        retry_delays=config.REDDIT_RETRY_DELAYS,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        min_title_length: int = config.REDDIT_MIN_TITLE_LENGTH,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.subreddit = subreddit
        self.retry_attempts = retry_attempts
        self.retry_delays = retry_delays
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.min_title_length = min_title_length

        self.session: Optional[aiohttp.ClientSession] = None
        self.access_token: Optional[AccessToken] = None
        self._cached_post: Any = _MISSING
        self._cache_date: Optional[date] = None
        # Created on first use so they bind to the running loop
        self._token_lock: Optional[asyncio.Lock] = None
        self._post_lock: Optional[asyncio.Lock] = None

    # -------------------------------------------------------------
    # Session
    # -------------------------------------------------------------
    def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": config.REDDIT_USER_AGENT},
            )
        return self.session

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.username and self.password)

    # -------------------------------------------------------------
    # OAuth (password grant)
    # -------------------------------------------------------------
    async def _request_token(self) -> Dict[str, Any]:
        session = self._session()
        async with session.post(
            config.REDDIT_TOKEN_ENDPOINT,
            data={"grant_type": "password", "username": self.username, "password": self.password},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
        ) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def get_access_token(self) -> Optional[str]:
        if self.access_token is not None and self.access_token.valid():
            return self.access_token.token

        if not self.is_configured():
            print("[REDDIT] Credentials not configured, skipping Reddit integration")
            return None

        if self._token_lock is None:
            self._token_lock = asyncio.Lock()
        async with self._token_lock:
            # Another caller may have finished the exchange while we waited
            if self.access_token is not None and self.access_token.valid():
                return self.access_token.token
            return await self._exchange_token()

    async def _exchange_token(self) -> Optional[str]:
        try:
            data = await retry.execute(
                self._request_token,
                max_attempts=self.retry_attempts,
                delays=self.retry_delays,
                is_retryable=retry.is_retryable_reddit_error,
                label="Reddit token request",
            )
        except Exception as e:
            print(f"[REDDIT] Error getting access token: {type(e).__name__}: {e}")
            return None

        if not isinstance(data, dict) or data.get("error") or not data.get("access_token"):
            print(f"[REDDIT] Token endpoint returned an error: {data!r}")
            return None

        self.access_token = AccessToken(
            token=data["access_token"],
            expires_at=time.time() + config.REDDIT_TOKEN_CACHE_SECONDS,
        )
        print("[REDDIT] Access token obtained")
        return self.access_token.token

    # -------------------------------------------------------------
    # Top post
    # -------------------------------------------------------------
    async def _request_top_listing(self, token: str) -> Dict[str, Any]:
        session = self._session()
        url = f"{config.REDDIT_API_BASE}/r/{self.subreddit}/top.json"
        started = time.monotonic()
        async with session.get(
            url,
            params={"limit": "1", "t": "day"},
            headers={"Authorization": f"Bearer {token}"},
        ) as resp:
            log_debug(f"[REDDIT] GET {url} -> {resp.status} ({(time.monotonic() - started) * 1000:.0f}ms)")
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def fetch_top_post(self) -> Optional[RedditPost]:
        token = await self.get_access_token()
        if not token:
            return None

        try:
            listing = await retry.execute(
                lambda: self._request_top_listing(token),
                max_attempts=self.retry_attempts,
                delays=self.retry_delays,
                is_retryable=retry.is_retryable_reddit_error,
                label="Reddit post fetch",
            )
        except Exception as e:
            print(f"[REDDIT] Failed to fetch top post: {type(e).__name__}: {e}")
            return None

        children = ((listing or {}).get("data") or {}).get("children") or []
        if not children:
            print(f"[REDDIT] No posts found in r/{self.subreddit}")
            return None

        post_data = children[0].get("data") or {}
        if not is_valid_post(post_data, self.min_title_length):
            print("[REDDIT] Top post does not meet criteria, skipping")
            return None

        post = process_post_data(post_data)
        print(f"[REDDIT] Fetched top post: {post.title!r} (score {post.score}, media {post.media_type})")
        return post

    async def get_top_post_cached(self, today: Optional[date] = None) -> Optional[RedditPost]:
        """One upstream fetch per UTC day; a None result is cached as well.

        Guilds sharing a post time deliver concurrently, so callers queue on a
        lock and the ones behind the first get its result from the cache.
        """
        if today is None:
            today = datetime.now(timezone.utc).date()

        if self._cache_date == today and self._cached_post is not _MISSING:
            log_debug("[REDDIT] Using cached post for today")
            return self._cached_post

        if self._post_lock is None:
            self._post_lock = asyncio.Lock()
        async with self._post_lock:
            if self._cache_date == today and self._cached_post is not _MISSING:
                log_debug("[REDDIT] Using cached post for today")
                return self._cached_post
            return await self._fetch_and_cache(today)

    async def _fetch_and_cache(self, today: date) -> Optional[RedditPost]:
        try:
            post = await self.fetch_top_post()
        except Exception as e:
            print(f"[REDDIT] Unexpected error fetching top post: {type(e).__name__}: {e}")
            post = None

        self._cached_post = post
        self._cache_date = today
        if post is not None:
            print(f"[REDDIT] New post cached for {today.isoformat()}")
        return post

    def clear_cache(self):
        self._cached_post = _MISSING
        self._cache_date = None
        self.access_token = None
        print("[REDDIT] Cache cleared")

    def status(self) -> dict:
        return {
            "configured": self.is_configured(),
            "has_token": self.access_token is not None,
            "token_expired": self.access_token is None or not self.access_token.valid(),
            "has_cached_post": self._cached_post not in (_MISSING, None),
            "cache_date": self._cache_date.isoformat() if self._cache_date else None,
        }
