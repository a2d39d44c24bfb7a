"""Task name validation and friendly name generation."""

from __future__ import annotations

import random
import re
from collections.abc import Iterable

from pit.core.errors import InvalidTaskName

MAX_NAME_LENGTH = 100
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

ADJECTIVES = (
    "curious", "brisk", "mellow", "vivid", "bright", "calm", "daring", "eager",
    "gentle", "keen", "lively", "nimble", "quiet", "rapid", "steady", "swift",
    "tidy", "bold", "clever", "fresh",
)  # fmt: skip

NOUNS = (
    "branch", "pixel", "thread", "anchor", "beacon", "circuit", "delta", "ember",
    "harbor", "lantern", "meadow", "moment", "quill", "signal", "spark", "stride",
    "trail", "vector", "weave", "whisper",
)  # fmt: skip

_RANDOM_ATTEMPTS = 20
_NUMBERED_FALLBACK_LIMIT = 1_000


def validate_task_name(name: str) -> str:
    """Return ``name`` unchanged or raise ``InvalidTaskName``.

    Names become branch components, directory names and tmux targets, so only
    ASCII letters, digits, hyphens and underscores are accepted.
    """

    if not name:
        raise InvalidTaskName("Task name cannot be empty.")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidTaskName(f"Task name too long (max {MAX_NAME_LENGTH} chars).")
    if not _NAME_PATTERN.match(name):
        raise InvalidTaskName(
            f"Invalid task name {name!r}: only alphanumeric characters, "
            "hyphens, and underscores are allowed.",
        )
    return name


def generate_task_name(existing: Iterable[str], *, rng: random.Random | None = None) -> str:
    """Pick an unused ``adjective-noun`` name, falling back to ``task-N``."""

    taken = set(existing)
    chooser = rng or random.Random()
    for _ in range(_RANDOM_ATTEMPTS):
        candidate = f"{chooser.choice(ADJECTIVES)}-{chooser.choice(NOUNS)}"
        if candidate not in taken:
            return candidate

    for index in range(1, _NUMBERED_FALLBACK_LIMIT):
        candidate = f"task-{index}"
        if candidate not in taken:
            return candidate

    index = _NUMBERED_FALLBACK_LIMIT
    while f"task-{index}" in taken:
        index += 1
    return f"task-{index}"
