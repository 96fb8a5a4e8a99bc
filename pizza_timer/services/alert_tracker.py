"""Once-only bookkeeping for time-based step alerts."""
from typing import Iterator, Set


class FiredAlertStore:
    """
    Remembers which step identities already fired a given kind of alert.

    Keys are step identity keys (step number + scheduled time), so a step
    moved by a reschedule gets a fresh key and can alert again. Entries are
    never removed; the store lives as long as the timer that owns it.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._fired: Set[str] = set()

    def should_fire(self, key: str) -> bool:
        """Record the key and return True the first time it is seen."""
        if key in self._fired:
            return False
        self._fired.add(key)
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._fired

    def __len__(self) -> int:
        return len(self._fired)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._fired))

    def __repr__(self):
        return f"<FiredAlertStore(kind='{self.kind}', fired={len(self._fired)})>"
