"""
Device fingerprint from host and runtime signals.

The fingerprint is never persisted. It only makes a copied identifier file
less useful on another machine.
"""

import hashlib
import locale
import os
import platform
import time
import uuid


def collect_signals() -> list:
    return [
        platform.system(),
        platform.release(),
        platform.machine(),
        platform.processor(),
        platform.node(),
        platform.python_implementation(),
        str(os.cpu_count() or ""),
        str(locale.getlocale()[0] or ""),
        str(time.timezone),
        format(uuid.getnode(), "x"),
    ]


def compute_fingerprint() -> str:
    """32-hex visitor id derived from the collected signals."""
    joined = "|".join(collect_signals())
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:32]
