"""Win counting for shard promotion."""

from __future__ import annotations


class PromotionTracker:
    """Counts winning optimizer cycles per rule id.

    A losing evaluation resets the rule's count, so eligibility needs
    ``threshold`` consecutive wins. Resetting a count never demotes a rule
    that is already in the constitution.
    """

    def __init__(self, threshold: int = 2) -> None:
        self.threshold = threshold
        self._wins: dict[str, int] = {}

    def record_win(self, rule_id: str) -> int:
        wins = self._wins.get(rule_id, 0) + 1
        self._wins[rule_id] = wins
        return wins

    def reset(self, rule_id: str) -> None:
        self._wins.pop(rule_id, None)

    def wins(self, rule_id: str) -> int:
        return self._wins.get(rule_id, 0)

    def is_eligible(self, rule_id: str) -> bool:
        return self.wins(rule_id) >= self.threshold

    def snapshot(self) -> dict[str, int]:
        return dict(self._wins)

    def __len__(self) -> int:
        return len(self._wins)


__all__ = ["PromotionTracker"]
