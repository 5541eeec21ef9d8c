"""
Wallet storage layer.

Entries are unique per (job_id, student_id); backends report a second
insert as DuplicateRecordError. ``mark_paid`` is a conditional write that
only succeeds from pending.
"""

import copy
import threading
from datetime import date
from typing import List, Optional, Protocol

from gigmarket.errors import DuplicateRecordError
from gigmarket.wallet.models import WalletEntry, WalletEntryStatus


class WalletStorage(Protocol):
    """Protocol for wallet entry persistence backends."""

    def insert_entry(self, entry: WalletEntry) -> str:
        """Insert an entry. Raises DuplicateRecordError for an existing (job, student)."""
        ...

    def get_entry(self, entry_id: str) -> Optional[WalletEntry]:
        ...

    def find_entry(self, job_id: str, student_id: str) -> Optional[WalletEntry]:
        ...

    def list_entries(self, student_id: str, status: Optional[str] = None) -> List[WalletEntry]:
        ...

    def mark_entry_paid(self, entry_id: str, payment_date: date) -> bool:
        """Set status paid and payment_date if the entry is still pending."""
        ...


class InMemoryWalletStorage:
    """In-memory wallet storage for testing and local development."""

    def __init__(self):
        self._entries: dict[str, WalletEntry] = {}
        self._entry_by_pair: dict[tuple[str, str], str] = {}  # (job_id, student_id) -> entry_id
        self._lock = threading.Lock()

    def insert_entry(self, entry: WalletEntry) -> str:
        pair = (entry.job_id, entry.student_id)
        with self._lock:
            if pair in self._entry_by_pair:
                raise DuplicateRecordError("wallet_entries", f"{pair[0]}/{pair[1]}")
            self._entries[entry.id] = copy.deepcopy(entry)
            self._entry_by_pair[pair] = entry.id
        return entry.id

    def get_entry(self, entry_id: str) -> Optional[WalletEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return copy.deepcopy(entry) if entry else None

    def find_entry(self, job_id: str, student_id: str) -> Optional[WalletEntry]:
        with self._lock:
            entry_id = self._entry_by_pair.get((job_id, student_id))
            return copy.deepcopy(self._entries[entry_id]) if entry_id else None

    def list_entries(self, student_id: str, status: Optional[str] = None) -> List[WalletEntry]:
        with self._lock:
            return [
                copy.deepcopy(e)
                for e in self._entries.values()
                if e.student_id == student_id and (status is None or e.status == status)
            ]

    def mark_entry_paid(self, entry_id: str, payment_date: date) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or not entry.is_pending:
                return False
            entry.status = WalletEntryStatus.PAID.value
            entry.payment_date = payment_date
            return True
