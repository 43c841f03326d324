"""
Patron directory: the account service as seen by circulation.

Circulation never loads patron profiles. It asks the directory two things
about a library card: does it exist, and how should its holder be addressed
in an email. ``DatabasePatronDirectory`` answers from the ``patrons`` table
through its own short-lived sessions; tests and other deployments can supply
any other implementation.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.exc import IntegrityError

from ..errors import RepositoryException
from ..models.patron import PatronContact
from .schema import Patron as PatronDB
from .session import DatabaseManager, safe_query

logger = logging.getLogger(__name__)


class PatronDirectory(ABC):
    """Resolves library cards to patron contact details."""

    @abstractmethod
    def get_contact(self, library_card_id: int) -> PatronContact | None:
        """Contact details for the card, or None if no such card exists."""

    def exists(self, library_card_id: int) -> bool:
        return self.get_contact(library_card_id) is not None

    def display_name(self, library_card_id: int) -> str | None:
        contact = self.get_contact(library_card_id)
        return contact.display_name if contact is not None else None


class DatabasePatronDirectory(PatronDirectory):
    """Patron directory backed by the ``patrons`` table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get_contact(self, library_card_id: int) -> PatronContact | None:
        with self.db_manager.session_scope() as session:
            row = safe_query(
                session,
                lambda s: s.get(PatronDB, library_card_id),
                f"Failed to get patron for card {library_card_id}",
            )
            return PatronContact.model_validate(row) if row is not None else None

    def register(self, contact: PatronContact) -> PatronContact:
        """
        Add a library card. Used by seeding and tests; the account service owns
        registration in production.

        Raises:
            RepositoryException: If the card id or email is already registered
        """
        try:
            with self.db_manager.session_scope() as session:
                session.add(PatronDB(**contact.model_dump()))
        except IntegrityError as e:
            raise RepositoryException(
                f"Card {contact.library_card_id} or email {contact.email} already registered"
            ) from e
        logger.info("Registered library card %s", contact.library_card_id)
        return contact
