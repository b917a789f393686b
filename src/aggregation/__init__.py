"""
Fan-out/fan-in aggregation of adoption transactions.
"""

from .aggregator import AdoptionAggregator
from .service import AdoptionService

__all__ = [
    "AdoptionAggregator",
    "AdoptionService",
]
