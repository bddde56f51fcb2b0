"""
Queue a one-off line for the next countdown post.

    arc-countdown-add-message "Just played some Arc Raiders - it's looking incredible!"
"""
import argparse
import sys
from typing import List, Optional

from arc_countdown.social import SocialMessageQueue


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Add a social message for the next countdown post")
    parser.add_argument("message", nargs="+", help="message text (quote it or pass several words)")
    parser.add_argument("--file", default=None, help="override the message file path")
    args = parser.parse_args(argv)

    message = " ".join(args.message).strip()
    if not message:
        parser.error("message must not be empty")

    queue = SocialMessageQueue(args.file)
    try:
        queue.push(message)
    except OSError as e:
        print(f"❌ Error saving message: {e}", file=sys.stderr)
        return 1

    print("✅ Message added for next countdown post:")
    print(f'"{message}"')
    return 0


if __name__ == "__main__":
    sys.exit(main())
