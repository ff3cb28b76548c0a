from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ballotbox import db
from ballotbox.database.models import Admin, Position, Voter
from ballotbox.database.store import init_db, transaction
from ballotbox.election.errors import ConstraintViolation, PersistenceError, PositionInUse


def test_transaction_commits(app):
    with transaction() as session:
        session.add(Position(name="President"))
    assert db.session.get(Position, "President") is not None


def test_domain_error_rolls_back(app):
    with pytest.raises(PositionInUse):
        with transaction() as session:
            session.add(Position(name="President"))
            session.flush()
            raise PositionInUse()
    assert db.session.get(Position, "President") is None


def test_integrity_error_becomes_constraint_violation(app):
    with transaction() as session:
        session.add(Voter(name="alice", password="pw", dob=date(1990, 1, 1)))

    with pytest.raises(ConstraintViolation) as excinfo:
        with transaction() as session:
            session.add(Voter(name="bob", password="pw", dob=date(1990, 1, 1)))
            session.add(Voter(name="alice", password="pw", dob=date(1990, 1, 1)))

    assert isinstance(excinfo.value, PersistenceError)
    names = db.session.execute(select(Voter.name)).scalars().all()
    assert names == ["alice"]


def test_store_failure_is_translated(app, registry):
    failure = OperationalError("SELECT", {}, Exception("connection lost"))
    with patch.object(db.session, "execute", side_effect=failure):
        with pytest.raises(PersistenceError) as excinfo:
            registry.list_positions()
    assert "connection lost" not in excinfo.value.message


def test_init_db_seeds_admin_once(app):
    init_db("someone-else", "pw")
    admins = db.session.execute(select(Admin)).scalars().all()
    assert [a.username for a in admins] == ["admin"]


def test_init_db_cli_command(app):
    db.drop_all()
    result = app.test_cli_runner().invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "Database initialised." in result.output
    assert db.session.execute(select(Admin.username)).scalar_one() == app.config["ADMIN_USERNAME"]


def test_unexpected_failure_is_translated(app):
    with pytest.raises(PersistenceError) as excinfo:
        with transaction() as session:
            session.add(Position(name="President"))
            session.flush()
            raise OSError("disk detached")
    assert isinstance(excinfo.value.__cause__, OSError)
    assert "disk detached" not in excinfo.value.message
    assert db.session.get(Position, "President") is None
