# ballotbox/database/store.py

# Transactional access to the election tables. Every service operation runs
# inside one transaction() scope: committed on success, rolled back on any
# exception, and the session is closed on every exit path.

import logging
from contextlib import contextmanager
from typing import Iterable

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ballotbox import db
from ballotbox.database.models import Admin, VotingStatus
from ballotbox.election.errors import ConstraintViolation, ElectionError, PersistenceError

logger = logging.getLogger(__name__)

VOTING_STATUS_ID = 1


@contextmanager
def transaction():
    session = db.session
    try:
        yield session
        session.commit()
    except ElectionError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        logger.warning("Constraint violation, transaction rolled back: %s", e.orig)
        raise ConstraintViolation() from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Store failure, transaction rolled back")
        raise PersistenceError() from e
    except Exception as e:
        session.rollback()
        logger.exception("Unexpected failure, transaction rolled back")
        raise PersistenceError() from e
    finally:
        session.close()


def voting_status_row(session) -> VotingStatus:
    """Return the singleton status row, creating it as inactive when missing."""
    status = session.get(VotingStatus, VOTING_STATUS_ID)
    if status is None:
        status = VotingStatus(id=VOTING_STATUS_ID, is_active=False)
        session.add(status)
        session.flush()
    return status


def restart_id_sequences(session, tables: Iterable[str]) -> None:
    """Reset auto-increment counters so the next row of each table gets id 1."""
    dialect = session.get_bind().dialect.name
    tables = list(tables)
    if dialect == 'sqlite':
        # INTEGER PRIMARY KEY reuses max(rowid) + 1 on its own; only
        # AUTOINCREMENT tables keep a counter in sqlite_sequence.
        has_sequence_table = session.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'")
        ).first()
        if has_sequence_table:
            for table in tables:
                session.execute(text("DELETE FROM sqlite_sequence WHERE name = :name"), {"name": table})
    elif dialect == 'postgresql':
        for table in tables:
            session.execute(
                text("SELECT setval(pg_get_serial_sequence(:table, 'id'), 1, false)"),
                {"table": table},
            )
    elif dialect in ('mysql', 'mariadb'):
        # DDL commits implicitly on MySQL, so this must stay the last statement.
        for table in tables:
            session.execute(text(f"ALTER TABLE {table} AUTO_INCREMENT = 1"))
    else:
        logger.warning("Id sequences not restarted: unsupported dialect %s", dialect)


def init_db(admin_username: str, admin_password: str) -> None:
    """Create all tables and seed the singleton admin and voting status rows."""
    db.create_all()
    with transaction() as session:
        admin = session.execute(select(Admin).limit(1)).scalar_one_or_none()
        if admin is None:
            session.add(Admin(username=admin_username, password=admin_password))
            logger.info("Seeded admin account '%s'", admin_username)
        voting_status_row(session)
