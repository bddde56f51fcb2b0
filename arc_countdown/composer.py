from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import discord

from arc_countdown import config
from arc_countdown.emojis import EmojiSelector
from arc_countdown.reddit import RedditClient, RedditPost
from arc_countdown.social import SocialMessageQueue
from arc_countdown.timeutil import format_release_date

# Days used by /countdown-test to preview each phase.
TEST_PHASE_DAYS = {
    "early": 60,
    "mid": 40,
    "final_month": 20,
    "final_week": 10,
    "final_days": 3,
}

TITLE_WARN_LENGTH = 200


@dataclass
class MessagePayload:
    title: str
    description: Optional[str]
    color: int
    footer: Optional[str] = None
    thumbnail_url: Optional[str] = None
    image_url: Optional[str] = None
    fields: List[Tuple[str, str, bool]] = field(default_factory=list)  # (name, value, inline)
    timestamp: Optional[datetime] = None

    def to_embed(self) -> discord.Embed:
        embed = discord.Embed(
            title=self.title[: config.TITLE_CHAR_LIMIT],
            description=self.description,
            color=self.color,
            timestamp=self.timestamp,
        )
        if self.thumbnail_url:
            embed.set_thumbnail(url=self.thumbnail_url)
        if self.image_url:
            embed.set_image(url=self.image_url)
        for name, value, inline in self.fields:
            embed.add_field(name=name, value=value, inline=inline)
        if self.footer:
            embed.set_footer(text=self.footer)
        return embed


def fallback_payload(title: str = "**ERROR** - Countdown message failed") -> MessagePayload:
    return MessagePayload(
        title=title,
        description="Unable to create countdown message. Please try again.",
        color=config.COLOR_ERROR,
        timestamp=datetime.now(timezone.utc),
    )


def title_prefix(days_remaining: int) -> str:
    if days_remaining <= 7:
        return f"⚠️ **{days_remaining} DAYS** until {config.GAME_NAME}!"
    return f"**{days_remaining} DAYS** until {config.GAME_NAME}!"


def reddit_field(post: RedditPost) -> Tuple[str, str, bool]:
    value = (
        f"[{post.title}]({post.url})\n"
        f"⬆️ {post.score} upvotes • 💬 {post.comments} comments"
    )
    return f"Top r/{config.REDDIT_SUBREDDIT} Post Today", value[:1024], False


class MessageComposer:
    def __init__(
        self,
        emoji_selector: EmojiSelector,
        reddit: RedditClient,
        social: SocialMessageQueue,
    ):
        self.emoji_selector = emoji_selector
        self.reddit = reddit
        self.social = social

    def _title_emojis(self, days_remaining: int, prefix: str) -> str:
        try:
            budget = config.TITLE_CHAR_LIMIT - len(prefix) - 1
            return self.emoji_selector.placement_for_title(days_remaining, budget=budget)
        except Exception as e:
            print(f"[COMPOSER] Emoji selection failed ({days_remaining} days): {type(e).__name__}: {e}")
            return ""

    def _base_payload(self, days_remaining: int, release_date: datetime, custom: Optional[str]) -> MessagePayload:
        date_str = format_release_date(release_date)
        game = config.GAME_NAME

        if days_remaining == 0:
            title = f"🎉 **{game.upper()} IS NOW LIVE!** 🎉"
            body = f"{game} has launched on {date_str}!"
            color = config.COLOR_LAUNCH
        elif days_remaining == 1:
            title = f"⚠️⚠️⚠️ **1 DAY** until {game}!"
            body = f"{game} launches TOMORROW - {date_str}!"
            color = config.COLOR_URGENT
        else:
            prefix = title_prefix(days_remaining)
            emojis = self._title_emojis(days_remaining, prefix)
            title = f"{prefix} {emojis}".rstrip()
            if days_remaining <= 7:
                body = f"Only {days_remaining} days left until {date_str}!"
                color = config.COLOR_URGENT
            else:
                body = f"{game} launches on {date_str}"
                color = config.COLOR_COUNTDOWN

        return MessagePayload(
            title=title,
            description=custom or body,
            color=color,
            footer=f"{game} - {config.GAME_STUDIO}",
            thumbnail_url=config.STEAM_THUMBNAIL_URL,
            timestamp=datetime.now(timezone.utc),
        )

    async def _enrich(self, payload: MessagePayload) -> MessagePayload:
        try:
            post = await self.reddit.get_top_post_cached()
        except Exception as e:
            print(f"[COMPOSER] Reddit enrichment failed: {type(e).__name__}: {e}")
            return payload

        if post is None:
            return payload

        payload.fields.append(reddit_field(post))
        if post.media_url and post.media_type in ("image", "video"):
            # Discord renders a thumbnail for video URLs
            payload.image_url = post.media_url
        return payload

    async def compose(self, days_remaining: int, release_date: datetime) -> MessagePayload:
        """The daily countdown. Never raises; consumes the pending social message."""
        try:
            custom = self.social.consume()
            payload = self._base_payload(days_remaining, release_date, custom)
            return await self._enrich(payload)
        except Exception as e:
            print(f"[COMPOSER] Error creating countdown message: {type(e).__name__}: {e}")
            return fallback_payload()

    async def compose_test(
        self,
        days_remaining: int,
        release_date: datetime,
        phase: Optional[str] = None,
    ) -> MessagePayload:
        """Preview for /countdown-test. Leaves the social message queued."""
        try:
            if phase:
                days_remaining = TEST_PHASE_DAYS.get(phase, days_remaining)
            payload = self._base_payload(days_remaining, release_date, None)
            if len(payload.title) > TITLE_WARN_LENGTH:
                print(f"[COMPOSER] Title is getting long ({len(payload.title)} chars): {payload.title}")
            return await self._enrich(payload)
        except Exception as e:
            print(f"[COMPOSER] Error creating test countdown message: {type(e).__name__}: {e}")
            return fallback_payload("**ERROR** - Test countdown message failed")
