"""
PetAttributes model decoded from the pet search service response.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class PetAttributes(BaseModel):
    """
    Descriptive attributes of a pet as returned by the pet search service.

    Every field is optional and defaults to an empty string. Values must be
    JSON strings; a number or boolean fails to decode. The service
    names fields without separators (``petid``, ``petcolor``); those wire
    names are accepted as aliases.
    """

    pet_id: str = Field(default="", alias="petid")
    availability: str = ""
    cuteness_rate: str = ""
    pet_color: str = Field(default="", alias="petcolor")
    pet_type: str = Field(default="", alias="pettype")
    pet_url: str = Field(default="", alias="peturl")
    price: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        # null means "not provided"; any other non-string value fails to decode
        if value is None:
            return ""
        return value

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "petid": "023",
                "availability": "yes",
                "cuteness_rate": "5",
                "petcolor": "brown",
                "pettype": "puppy",
                "peturl": "https://example.com/pets/023.jpg",
                "price": "250",
            }
        }
