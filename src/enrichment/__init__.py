"""
Pet search enrichment lookups.
"""

from .pet_search import EnrichmentError, PetSearchClient

__all__ = [
    "EnrichmentError",
    "PetSearchClient",
]
