import random
from typing import List, Optional

from arc_countdown import config
from arc_countdown.emoji_data import LAUNCH, PHASES, PHASES_BY_KEY, EmojiPhase
from arc_countdown.logs import log_debug


def classify_phase(days_remaining: int) -> EmojiPhase:
    if days_remaining == 0:
        return LAUNCH
    for phase in PHASES:
        if phase.contains(days_remaining):
            return phase
    # Negative values shouldn't happen (days_remaining floors at 0)
    return PHASES[0]


def get_phase(key: str) -> EmojiPhase:
    return PHASES_BY_KEY[key]


class EmojiSelector:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        *,
        max_attempts: int = config.MAX_SELECTION_ATTEMPTS,
        max_title_emojis: int = config.MAX_TITLE_EMOJIS,
    ):
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.max_title_emojis = max_title_emojis

    def select_emojis(self, phase: EmojiPhase) -> List[str]:
        """Up to phase.target_count distinct emojis drawn uniformly from the pool."""
        pool = phase.pool
        selected: List[str] = []
        if not pool or phase.target_count <= 0:
            return selected

        attempts = 0
        while len(selected) < phase.target_count and attempts < self.max_attempts:
            pick = self.rng.choice(pool)
            if pick not in selected:
                selected.append(pick)
            attempts += 1

        if len(selected) != phase.target_count:
            print(
                f"[EMOJI] Emoji count mismatch for phase {phase.key}: "
                f"expected {phase.target_count}, got {len(selected)} (pool size {len(pool)})"
            )
        log_debug(f"[EMOJI] {phase.key}: {' '.join(selected)}")
        return selected

    def emojis_for_days(self, days_remaining: int) -> List[str]:
        return self.select_emojis(classify_phase(days_remaining))

    def placement_for_title(self, days_remaining: int, budget: int = config.TITLE_CHAR_LIMIT) -> str:
        """
        Space-joined emojis for an embed title.

        Never more than max_title_emojis, and trimmed further if the joined
        string would not fit in `budget` characters.
        """
        emojis = self.emojis_for_days(days_remaining)[: self.max_title_emojis]
        while emojis and len(" ".join(emojis)) > budget:
            emojis.pop()
        return " ".join(emojis)

    def phase_info(self, days_remaining: int) -> dict:
        phase = classify_phase(days_remaining)
        return {
            "phase": phase.key,
            "name": phase.name,
            "days_range": [phase.min_days, phase.max_days],
            "emoji_count": phase.target_count,
            "mood": phase.mood,
        }

    def stats(self) -> dict:
        return {p.key: {"count": len(p.pool), "target": p.target_count} for p in PHASES}
