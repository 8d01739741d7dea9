from __future__ import annotations

import secrets
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def generate_id() -> str:
    """
    Millisecond epoch prefix plus 9 random base-36 characters.

    Ids sort roughly by creation time and stay unique across clients that
    create records offline.
    """
    stamp = str(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return stamp + suffix
