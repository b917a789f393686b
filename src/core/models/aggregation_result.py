"""
AggregationResult model summarizing one aggregation run.
"""

from pydantic import BaseModel, Field

from .adoption import Adoption


class AggregationResult(BaseModel):
    """
    Outcome of one aggregation run.

    Attributes:
        adoptions: Merged adoption records, in arrival order (not stable)
        transactions_fetched: Number of transactions read from the store
        failed_lookups: Lookups that failed, timed out or were cancelled
        cancelled: Whether the run stopped early because its context was cancelled
    """

    adoptions: list[Adoption] = Field(default_factory=list)
    transactions_fetched: int = Field(default=0, ge=0)
    failed_lookups: int = Field(default=0, ge=0)
    cancelled: bool = False

    @property
    def succeeded_lookups(self) -> int:
        """Lookups that completed and decoded, including empty responses."""
        return max(self.transactions_fetched - self.failed_lookups, 0)

    class Config:
        json_schema_extra = {
            "example": {
                "adoptions": [],
                "transactions_fetched": 25,
                "failed_lookups": 2,
                "cancelled": False,
            }
        }
