"""
Core data models for the adoption aggregation service.

All models use Pydantic for runtime validation and type safety.
"""

from .adoption import Adoption
from .aggregation_result import AggregationResult
from .pet_attributes import PetAttributes
from .transaction import Transaction

__all__ = [
    "Transaction",
    "PetAttributes",
    "Adoption",
    "AggregationResult",
]
