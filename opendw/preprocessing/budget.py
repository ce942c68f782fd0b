"""
Propagation budget.

Propagation on large formulations can take many worklist pops before
reaching its fixpoint. A PropagationBudget bounds the work of one or
several preprocessing calls. The engine checks it between pops and stops
with status INCOMPLETE when it is exhausted.

The same budget object can be handed to several calls (the preprocessing of
every node of a dive, for instance); pops and elapsed time then accumulate
across calls.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from opendw.config import config


@dataclass
class PropagationBudget:
    """
    Limits on propagation work.

    Attributes:
        max_pops: Maximum number of worklist pops (None = unlimited)
        max_time: Maximum wall-clock seconds, counted from the first pop
            (None = unlimited)
        num_pops: Pops consumed so far
    """
    max_pops: Optional[int] = None
    max_time: Optional[float] = None
    num_pops: int = 0
    _started_at: Optional[float] = field(default=None, repr=False)

    @classmethod
    def from_config(cls) -> 'PropagationBudget':
        """Budget built from the global configuration."""
        return cls(
            max_pops=config.max_propagation_pops,
            max_time=config.max_propagation_time,
        )

    def start(self) -> None:
        """Start the clock if it is not running yet."""
        if self._started_at is None:
            self._started_at = time.time()

    def consume_pop(self) -> None:
        self.start()
        self.num_pops += 1

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.time() - self._started_at

    @property
    def exhausted(self) -> bool:
        """Whether no more pops are allowed."""
        if self.max_pops is not None and self.num_pops >= self.max_pops:
            return True
        return self.max_time is not None and self.elapsed >= self.max_time

    def __repr__(self) -> str:
        return (
            f"PropagationBudget(pops={self.num_pops}/{self.max_pops}, "
            f"time={self.elapsed:.3f}/{self.max_time})"
        )
