# ballotbox/authentication/credentials.py

import logging

from sqlalchemy import select

from ballotbox.database.models import Admin
from ballotbox.database.store import transaction
from ballotbox.election.errors import InvalidCredentials

logger = logging.getLogger(__name__)


def authenticate_admin(username, password) -> int:
    """Check the singleton admin credential; returns the admin row id."""
    if not isinstance(username, str) or not isinstance(password, str):
        raise InvalidCredentials()
    with transaction() as session:
        admin_id = session.execute(
            select(Admin.id).where(Admin.username == username.strip(), Admin.password == password)
        ).scalar_one_or_none()
    if admin_id is None:
        logger.info("Admin login failed for '%s'", username)
        raise InvalidCredentials()
    return admin_id
