import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[CONFIG] {name}={raw!r} is not an integer, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[CONFIG] {name}={raw!r} is not a number, using {default}")
        return default


# ==========================
# DISCORD
# ==========================

TOKEN = os.getenv("DISCORD_TOKEN", "").strip()
TOKEN_PLACEHOLDER = "your_bot_token_here"

BOT_CLIENT_ID = os.getenv("DISCORD_CLIENT_ID", "1413486967525478462").strip()
BOT_PERMISSIONS = 234881024
INVITE_URL = (
    f"https://discord.com/api/oauth2/authorize?client_id={BOT_CLIENT_ID}"
    f"&permissions={BOT_PERMISSIONS}&scope=bot"
)
GITHUB_URL = "https://github.com/NaturalInflux/arc-raiders-countdown-bot"

DISCORD_RETRY_ATTEMPTS = _env_int("DISCORD_RETRY_ATTEMPTS", 3)
DISCORD_RETRY_DELAYS = (1.0, 2.0, 4.0)

# ==========================
# GAME
# ==========================

GAME_NAME = "Arc Raiders"
GAME_STUDIO = "Embark Studios"
STEAM_APP_ID = "2389730"
STEAM_THUMBNAIL_URL = f"https://cdn.akamai.steamstatic.com/steam/apps/{STEAM_APP_ID}/header.jpg"
DEFAULT_RELEASE_DATE = "2025-10-30T00:00:00Z"
RELEASE_DATE_RAW = os.getenv("RELEASE_DATE", DEFAULT_RELEASE_DATE).strip() or DEFAULT_RELEASE_DATE

# ==========================
# REDDIT
# ==========================

REDDIT_API_BASE = "https://oauth.reddit.com"
REDDIT_TOKEN_ENDPOINT = "https://www.reddit.com/api/v1/access_token"
REDDIT_SUBREDDIT = os.getenv("REDDIT_SUBREDDIT", "arcraiders").strip() or "arcraiders"
REDDIT_USER_AGENT = "ArcRaidersCountdownBot/1.0.0"
REDDIT_TOKEN_CACHE_SECONDS = 45 * 60  # tokens live 60 minutes
REDDIT_RETRY_ATTEMPTS = _env_int("REDDIT_RETRY_ATTEMPTS", 3)
REDDIT_RETRY_DELAYS = (1.0, 2.0, 4.0)
REDDIT_MIN_TITLE_LENGTH = _env_int("REDDIT_MIN_TITLE_LENGTH", 10)

REDDIT_CLIENT_ID = os.getenv("REDDIT_CLIENT_ID", "").strip()
REDDIT_CLIENT_SECRET = os.getenv("REDDIT_CLIENT_SECRET", "").strip()
REDDIT_USERNAME = os.getenv("REDDIT_USERNAME", "").strip()
REDDIT_PASSWORD = os.getenv("REDDIT_PASSWORD", "").strip()

HTTP_TIMEOUT_SECONDS = _env_float("HTTP_TIMEOUT_SECONDS", 10.0)

# ==========================
# FILES
# ==========================

CONFIG_FILE = Path(os.getenv("COUNTDOWN_CONFIG_PATH", "server-config.json"))
SOCIAL_MESSAGE_FILE = Path(os.getenv("COUNTDOWN_MESSAGE_PATH", "next-message.txt"))
MONITOR_FILE = Path(os.getenv("COUNTDOWN_MONITOR_PATH", "monitor-data.json"))
MAX_CONFIG_BACKUPS = _env_int("MAX_CONFIG_BACKUPS", 5)

# ==========================
# SCHEDULE / EMOJI / HEALTH
# ==========================

DEFAULT_POST_TIME = "12:00"  # UTC

MAX_TITLE_EMOJIS = 4
MAX_SELECTION_ATTEMPTS = 100
TITLE_CHAR_LIMIT = 256  # Discord embed title limit

HEALTH_HOST = os.getenv("HEALTH_HOST", "0.0.0.0").strip() or "0.0.0.0"
HEALTH_PORT = _env_int("HEALTH_PORT", 3000)
HEALTH_ENDPOINT = "/health"

LOG_DEBUG = os.getenv("LOG_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")

# ==========================
# EMBEDS
# ==========================

COLOR_COUNTDOWN = 0x5294E2
COLOR_URGENT = 0xF68B3E
COLOR_LAUNCH = 0xDC322F
COLOR_ERROR = 0xFF0000
COLOR_WARNING = 0xFF6B6B
COLOR_SUCCESS = 0x2AA198

DONATION_ADDRESSES = (
    ("₿ Bitcoin (BTC)", "bc1q3wksadftgyn5f6y36pvprpmd54ny5jj8x8pxeu"),
    ("Ξ Ethereum (ETH)", "0x9c0d097ef971674D9133e88Eff5a256187d2C09d"),
    (
        "ɱ Monero (XMR)",
        "88tVVqExo9EPmRB4CwLV7qFgDHrbfLyXrLFsYcFb6KCS1T8RiimThkBgMQzRewTTAKcfKzMs1rJ3qFC2Mm3HTNVcVi2wSVT",
    ),
)


def require_token() -> str:
    if not TOKEN or TOKEN == TOKEN_PLACEHOLDER:
        raise RuntimeError(
            "No bot token found. Set the DISCORD_TOKEN environment variable "
            "(or add it to a .env file next to the bot)."
        )
    return TOKEN
