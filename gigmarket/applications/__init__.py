"""
Applications: students' claims on jobs and their negotiation.
"""

from gigmarket.applications.ledger import ApplicationLedger
from gigmarket.applications.models import (
    Application,
    ApplicationStatus,
    Decision,
    NegotiationOffer,
    Party,
)
from gigmarket.applications.storage import ApplicationStorage, InMemoryApplicationStorage

__all__ = [
    "Application",
    "ApplicationLedger",
    "ApplicationStatus",
    "ApplicationStorage",
    "Decision",
    "InMemoryApplicationStorage",
    "NegotiationOffer",
    "Party",
]
