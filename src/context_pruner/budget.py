"""Budget-constrained message selection."""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Set

from .types import Message, MessageImportance


def retention_floor(ratio: float, count: int) -> int:
    """ceil(ratio × count), ignoring float noise like 0.3 × 10 = 3.0000000000000004."""
    return min(count, math.ceil(round(ratio * count, 9)))


@dataclass
class Selection:
    """Result of budget allocation, as indices into the input."""
    kept: List[int]              # ascending, i.e. chronological
    retained_tokens: int
    forced: List[int] = field(default_factory=list)  # added by the retention floor

    @property
    def kept_set(self) -> Set[int]:
        return set(self.kept)


class TokenBudget:
    """
    Fills a token budget with the most important messages.

    1. System messages are taken first, unconditionally.
    2. Remaining messages go in by importance while they fit.
    3. If fewer than the retention floor survive, the most recent
       excluded messages are forced in, even over budget.
    """

    def __init__(
        self,
        max_tokens: int = 4000,
        min_retain_ratio: float = 0.3,
        prioritize_system: bool = True,
    ):
        """
        Args:
            max_tokens: Total token budget
            min_retain_ratio: Fraction of messages that always survives
            prioritize_system: Pre-select system messages
        """
        self.max_tokens = max_tokens
        self.min_retain_ratio = min_retain_ratio
        self.prioritize_system = prioritize_system

    def allocate(
        self,
        messages: Sequence[Message],
        scores: Sequence[MessageImportance],
    ) -> Selection:
        """
        Select messages under the budget.

        Args:
            messages: Full history, chronological
            scores: Importance per message (same order, carries token counts)

        Returns:
            Selection with kept indices in chronological order
        """
        kept: Set[int] = set()
        used = 0

        if self.prioritize_system:
            for i, message in enumerate(messages):
                if message.role == "system":
                    kept.add(i)
                    used += scores[i].tokens

        # Highest score first; among equals the later message wins
        candidates = sorted(
            (i for i in range(len(messages)) if i not in kept),
            key=lambda i: (scores[i].final_score, i),
            reverse=True,
        )
        for i in candidates:
            tokens = scores[i].tokens
            if used + tokens <= self.max_tokens:
                kept.add(i)
                used += tokens

        forced = []
        floor = retention_floor(self.min_retain_ratio, len(messages))
        i = len(messages) - 1
        while len(kept) < floor and i >= 0:
            if i not in kept:
                kept.add(i)
                forced.append(i)
                used += scores[i].tokens
            i -= 1

        return Selection(kept=sorted(kept), retained_tokens=used, forced=forced)

    def set_budget(self, tokens: int):
        """Update total budget."""
        self.max_tokens = max(0, tokens)
