"""
==============================================================================
Barcode Consensus Module
==============================================================================

Majority vote over the most recent live barcode reads.

A live linear decoder occasionally misreads a single frame. A candidate is
only accepted once it appears `threshold` times within the last `window`
valid reads. With threshold 1 every read is accepted immediately.

==============================================================================
"""

from __future__ import annotations

from collections import Counter, deque
from typing import Deque, Optional


class ConsensusBuffer:
    """
    Sliding-window majority vote.

    Example:
        >>> buffer = ConsensusBuffer(window=5, threshold=3)
        >>> buffer.push("ABC"), buffer.push("ABD"), buffer.push("ABC")
        (None, None, None)
        >>> buffer.push("ABC")
        'ABC'
    """

    def __init__(self, window: int = 5, threshold: int = 3) -> None:
        if threshold < 1 or threshold > window:
            raise ValueError(f"threshold must be in 1..{window}, got {threshold}")
        self._threshold = threshold
        self._reads: Deque[str] = deque(maxlen=window)

    def __len__(self) -> int:
        return len(self._reads)

    def push(self, text: str) -> Optional[str]:
        """
        Record a read.

        Returns:
            The agreed text once it reaches the threshold (buffer is then
            cleared), otherwise None
        """
        self._reads.append(text)
        winner, count = Counter(self._reads).most_common(1)[0]
        if count >= self._threshold:
            self._reads.clear()
            return winner
        return None

    def clear(self) -> None:
        self._reads.clear()
