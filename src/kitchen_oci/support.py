"""Random names and passwords drawn from an injected random source"""

from __future__ import annotations

import random
import string
from typing import Sequence


def random_string(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))


def random_number(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(string.digits) for _ in range(length))


def random_password(rng: random.Random, special_chars: Sequence[str]) -> str:
    """Five each of special, lowercase, uppercase and digit characters, shuffled"""
    chars = (
        [rng.choice(special_chars) for _ in range(5)]
        + [rng.choice(string.ascii_lowercase) for _ in range(5)]
        + [rng.choice(string.ascii_uppercase) for _ in range(5)]
        + [rng.choice(string.digits) for _ in range(5)]
    )
    rng.shuffle(chars)
    return "".join(chars)


def random_hostname(rng: random.Random, prefix: str | None, length: int = 6) -> str:
    return "-".join(part for part in (prefix, random_string(rng, length)) if part)
