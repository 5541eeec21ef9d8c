"""
Wallet: per-student earnings from completed jobs.
"""

from gigmarket.wallet.ledger import WalletLedger
from gigmarket.wallet.models import WalletEntry, WalletEntryStatus, WalletSort, WalletSummary
from gigmarket.wallet.storage import InMemoryWalletStorage, WalletStorage

__all__ = [
    "InMemoryWalletStorage",
    "WalletEntry",
    "WalletEntryStatus",
    "WalletLedger",
    "WalletSort",
    "WalletStorage",
    "WalletSummary",
]
