"""
Transaction model representing one adoption row read from the store.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    """
    A record of a pet being adopted.

    Read from the transactions table and never modified afterwards.

    Attributes:
        transaction_id: Identifier of the adoption transaction
        pet_id: Identifier of the adopted pet
        adoption_date: When the adoption happened
    """

    transaction_id: str = Field(..., min_length=1)
    pet_id: str = Field(..., min_length=1)
    adoption_date: datetime

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "transaction_id": "5bd3e4a6-3a7e-4e0b-8d19-1f9c2f0c6a11",
                "pet_id": "023",
                "adoption_date": "2025-11-17T10:24:00Z",
            }
        }
