"""Patron contact model.

Patron profiles belong to the account service. Circulation only ever needs a
display name and an email address for a library card.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PatronContact(BaseModel):
    """How to address the holder of a library card."""

    library_card_id: int = Field(..., ge=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
