"""
Adoption model: a transaction merged with one attribute record.
"""

from datetime import datetime

from pydantic import BaseModel

from .pet_attributes import PetAttributes
from .transaction import Transaction


class Adoption(BaseModel):
    """
    Enriched view of an adoption returned to callers.

    Has no identity beyond its field values. Several adoptions may share a
    transaction_id when the pet search service returns more than one
    attribute record for a pet.
    """

    transaction_id: str
    pet_id: str
    adoption_date: datetime
    availability: str = ""
    cuteness_rate: str = ""
    pet_color: str = ""
    pet_type: str = ""
    pet_url: str = ""
    price: str = ""

    @classmethod
    def merge(cls, transaction: Transaction, attributes: PetAttributes) -> "Adoption":
        """
        Merge a transaction with one attribute record.

        The pet id comes from the attribute record. When the service leaves
        it out this falls back to the transaction's pet id, where a plain
        copy of the record would leave it empty; the returned pet id always
        identifies the adopted pet.
        """
        return cls(
            transaction_id=transaction.transaction_id,
            pet_id=attributes.pet_id or transaction.pet_id,
            adoption_date=transaction.adoption_date,
            availability=attributes.availability,
            cuteness_rate=attributes.cuteness_rate,
            pet_color=attributes.pet_color,
            pet_type=attributes.pet_type,
            pet_url=attributes.pet_url,
            price=attributes.price,
        )

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "transaction_id": "5bd3e4a6-3a7e-4e0b-8d19-1f9c2f0c6a11",
                "pet_id": "023",
                "adoption_date": "2025-11-17T10:24:00Z",
                "availability": "yes",
                "cuteness_rate": "5",
                "pet_color": "brown",
                "pet_type": "puppy",
                "pet_url": "https://example.com/pets/023.jpg",
                "price": "250",
            }
        }
