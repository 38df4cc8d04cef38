import threading
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Optional, Tuple

CacheKey = Tuple[str, int, int, date]  # (employee_id, leave_type_id, year, as_of)
Generation = Tuple[int, int, int]  # (cache epoch, employee generation, pair generation)


class BalanceCache:
    """
    Process-local memo of computed balances.

    Entries for an (employee, leave type) pair are dropped whenever one of
    its requests changes state, all of an employee's entries when the
    employee record changes, and everything on policy edits. Each drop bumps
    a generation counter; a balance computed under an older generation is
    not stored.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self._lock = threading.Lock()
        self._epoch = 0
        self._employee_generations: Dict[str, int] = defaultdict(int)
        self._pair_generations: Dict[Tuple[str, int], int] = defaultdict(int)

    def generation(self, employee_id: str, leave_type_id: int) -> Generation:
        """Read before computing a balance and hand back to `put`."""
        with self._lock:
            return self._generation(employee_id, leave_type_id)

    def get(self, key: CacheKey) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, value: Any, generation: Optional[Generation] = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation(key[0], key[1]):
                return False
            self._entries[key] = value
            return True

    def invalidate(self, employee_id: str, leave_type_id: int) -> None:
        # All years go: carry-forward makes later years depend on earlier ones
        with self._lock:
            self._pair_generations[(employee_id, leave_type_id)] += 1
            self._drop(lambda k: k[0] == employee_id and k[1] == leave_type_id)

    def invalidate_employee(self, employee_id: str) -> None:
        with self._lock:
            self._employee_generations[employee_id] += 1
            self._drop(lambda k: k[0] == employee_id)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _generation(self, employee_id: str, leave_type_id: int) -> Generation:
        return (
            self._epoch,
            self._employee_generations.get(employee_id, 0),
            self._pair_generations.get((employee_id, leave_type_id), 0),
        )

    def _drop(self, stale) -> None:
        for key in [k for k in self._entries if stale(k)]:
            del self._entries[key]


balance_cache = BalanceCache()
