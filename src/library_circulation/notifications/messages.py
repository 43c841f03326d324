"""Notification texts sent by the circulation engine."""

from ..models.patron import PatronContact
from .gateway import Notification

HOLD_PLACED_SUBJECT = "Place hold on the book"


def hold_claim_notification(
    contact: PatronContact, asset_title: str, claim_window_hours: int
) -> Notification:
    """Tell the first holder to come and collect the item within the claim window."""
    body = (
        f"You have placed hold on the asset: '{asset_title}' from our library. "
        f"Now you have to come to us and take the item in {claim_window_hours} hours time. "
        "If you will not take the item up to this time you will not be able to borrow it."
    )
    return Notification(
        recipient_name=contact.first_name,
        recipient_address=contact.email,
        subject=HOLD_PLACED_SUBJECT,
        body=body,
    )
