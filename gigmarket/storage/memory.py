"""Single-object in-memory store implementing all three storage protocols."""

from gigmarket.applications.storage import InMemoryApplicationStorage
from gigmarket.jobs.storage import InMemoryJobStorage
from gigmarket.wallet.storage import InMemoryWalletStorage


class InMemoryMarketplaceStorage(
    InMemoryJobStorage, InMemoryApplicationStorage, InMemoryWalletStorage
):
    """Jobs, applications and wallet entries held in process memory."""

    def __init__(self):
        InMemoryJobStorage.__init__(self)
        InMemoryApplicationStorage.__init__(self)
        InMemoryWalletStorage.__init__(self)

    def close(self) -> None:
        pass
