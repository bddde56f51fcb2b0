"""
One-shot custom line for the next countdown post.

An operator queues a message with `arc-countdown-add-message "..."`; the next
composed countdown uses it as its description and the file is gone afterwards.
"""
import os
from pathlib import Path
from typing import Optional

from arc_countdown import config


class SocialMessageQueue:
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or config.SOCIAL_MESSAGE_FILE)

    def push(self, message: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(message.strip())
        os.replace(tmp_path, self.path)

    def peek(self) -> Optional[str]:
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return text or None

    def consume(self) -> Optional[str]:
        """Read and delete the pending message. At most one caller ever gets it."""
        claimed = self.path.with_suffix(self.path.suffix + f".claimed.{os.getpid()}")
        try:
            # rename is atomic: whoever wins the rename owns the message
            os.replace(self.path, claimed)
        except FileNotFoundError:
            return None
        except OSError as e:
            print(f"[SOCIAL] Error claiming social message: {type(e).__name__}: {e}")
            return None

        try:
            text = claimed.read_text(encoding="utf-8").strip()
        except OSError as e:
            print(f"[SOCIAL] Error reading social message: {type(e).__name__}: {e}")
            text = ""
        finally:
            try:
                claimed.unlink()
            except OSError as e:
                print(f"[SOCIAL] Could not delete {claimed.name}: {e}")

        if not text:
            return None
        print("[SOCIAL] Social message consumed and file deleted")
        return text
