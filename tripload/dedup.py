from typing import Protocol


class KeyIndex(Protocol):
    def observe(self, key: str) -> bool: ...


class InMemoryKeyIndex:
    # Keys are never evicted; memory grows with the unique trips seen in one run.

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def observe(self, key: str) -> bool:
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys
