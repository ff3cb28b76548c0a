import os
import tempfile
from datetime import date

import pytest

# The app reads its configuration at import time, so point it at a throwaway
# SQLite file before anything imports ballotbox.
_DB_DIR = tempfile.mkdtemp(prefix="ballotbox-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "election.db")
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-ballotbox-with-enough-length"

from ballotbox import app as flask_app, db  # noqa: E402
from ballotbox.database.store import init_db  # noqa: E402
from ballotbox.election.ballot import BallotEngine  # noqa: E402
from ballotbox.election.registry import ElectionRegistry  # noqa: E402
from ballotbox.election.session import VotingSession  # noqa: E402
from ballotbox.election.voters import VoterDirectory  # noqa: E402

TODAY = date(2026, 10, 19)


@pytest.fixture
def app():
    """App context over a freshly created schema with the admin seeded."""
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        init_db("admin", "admin123")
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def registry(app):
    return ElectionRegistry()


@pytest.fixture
def directory(app):
    return VoterDirectory(clock=lambda: TODAY)


@pytest.fixture
def voting(app):
    return VotingSession()


@pytest.fixture
def engine(app):
    return BallotEngine()


@pytest.fixture
def make_voter(directory):
    """Register a voter born in 1990, verified unless asked otherwise."""
    def _make(name, verified=True, password="secret"):
        voter = directory.register(name, password, date(1990, 5, 1))
        if verified:
            voter = directory.set_verified(voter.id, True)
        return voter
    return _make


@pytest.fixture
def admin_headers(client):
    resp = client.post('/admin/login', json={'username': 'admin', 'password': 'admin123'})
    assert resp.status_code == 200
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}
