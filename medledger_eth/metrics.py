"""
Non-behavioral client metrics.

Counts and latencies of calls to the ledger and the content store only.
No addresses, CIDs, record ids or payload sizes are recorded.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class Metrics:
    """In-process counters and last-value gauges."""

    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)

    def inc(self, name: str, by: int = 1) -> None:
        """Increment counter by value."""
        self.counters[name] = self.counters.get(name, 0) + by

    def observe(self, name: str, value: float) -> None:
        """Record gauge value."""
        self.gauges[name] = float(value)

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        """Observe ``<name>_ms`` on success, bump ``<name>_errors_total`` on failure."""
        t0 = time.time()
        try:
            yield
        except Exception:
            self.inc(f"{name}_errors_total")
            raise
        self.observe(f"{name}_ms", (time.time() - t0) * 1000.0)

    def snapshot(self) -> dict:
        """Return current metrics snapshot."""
        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
        }
