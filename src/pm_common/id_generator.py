"""Business ID generator for prediction, purchase and shield references.

IDs are prefixed by kind and sort by creation time:

    pred_0190f3c2a4b1_000001
    ^^^^ ^^^^^^^^^^^^ ^^^^^^
    kind ms timestamp  per-process sequence (hex) (decimal, wraps at 1e6)

The prefix keeps a reference readable in the ledger's reference_id column;
uniqueness across processes is enforced by the tables, not here.
"""

import itertools
import threading
import time

_SEQUENCE_WRAP = 1_000_000


class BusinessIdGenerator:
    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._last = ""
        self._lock = threading.Lock()

    def next_id(self, prefix: str = "id") -> str:
        with self._lock:
            while True:
                seq = next(self._counter) % _SEQUENCE_WRAP
                candidate = f"{int(time.time() * 1000):012x}_{seq:06d}"
                if candidate > self._last:
                    self._last = candidate
                    return f"{prefix}_{candidate}"


_default_generator = BusinessIdGenerator()


def generate_id(prefix: str = "id") -> str:
    return _default_generator.next_id(prefix)
