"""Per-logical-name advisory locks for callers that issue concurrently.

The engine takes no locks on its own. A long-lived caller (e.g. a web handler
serving many requests) passes one NameLocks instance to every issuance so two
issuances targeting the same (role, root, name) run one after the other.
Keys are built from sanitized names, so names sharing a directory share a lock.
An entry lives only while some caller holds or waits for it.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple


class NameLocks:
	def __init__(self):
		self._guard = threading.Lock()
		# key -> [lock, number of holders and waiters]
		self._locks: Dict[Tuple[str, ...], List] = {}

	def _acquire_entry(self, key: Tuple[str, ...]) -> threading.Lock:
		with self._guard:
			entry = self._locks.get(key)
			if entry is None:
				entry = self._locks[key] = [threading.Lock(), 0]
			entry[1] += 1
			return entry[0]

	def _release_entry(self, key: Tuple[str, ...]) -> None:
		with self._guard:
			entry = self._locks[key]
			entry[1] -= 1
			if entry[1] == 0:
				del self._locks[key]

	@contextmanager
	def hold(self, role: str, *names: str) -> Iterator[None]:
		key = (role, *names)
		lock = self._acquire_entry(key)
		try:
			with lock:
				yield
		finally:
			self._release_entry(key)

	def __len__(self) -> int:
		with self._guard:
			return len(self._locks)


__all__ = ["NameLocks"]
