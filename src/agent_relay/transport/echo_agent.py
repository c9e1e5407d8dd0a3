"""Local stand-in for the external agent process used in tests and demos.

Consumes ``message_<id>.txt`` files and answers each with ``reponse_<id>.txt``
holding a reply built from the request text.
"""

from __future__ import annotations

import argparse
import os
import re
import sys
import time
from collections.abc import Callable
from pathlib import Path

_REQUEST_NAME = re.compile(r"^message_(\d+)\.txt$")


def echo_reply(prompt: str) -> str:
    """Return the request text unchanged."""

    return prompt


def respond_pending(
    message_dir: Path,
    reply: Callable[[str], str] = echo_reply,
) -> int:
    """Answer every request currently waiting in ``message_dir``."""

    answered = 0
    for path in sorted(message_dir.iterdir()):
        match = _REQUEST_NAME.match(path.name)
        if match is None:
            continue
        try:
            prompt = path.read_text("utf-8")
        except OSError:
            continue
        response_path = message_dir / f"reponse_{match.group(1)}.txt"
        tmp_path = message_dir / f".{response_path.name}.tmp"
        tmp_path.write_text(reply(prompt), "utf-8")
        os.replace(tmp_path, response_path)
        path.unlink(missing_ok=True)
        answered += 1
    return answered


def main(argv: list[str] | None = None) -> int:
    """Serve requests until interrupted (or once with ``--once``)."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--message-dir", required=True)
    parser.add_argument("--interval", type=float, default=0.2)
    parser.add_argument("--once", action="store_true")
    args = parser.parse_args(argv)

    message_dir = Path(args.message_dir)
    message_dir.mkdir(parents=True, exist_ok=True)
    if args.once:
        respond_pending(message_dir)
        return 0
    try:
        while True:
            respond_pending(message_dir)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
