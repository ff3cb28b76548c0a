# ballotbox/election/session.py

import logging

from sqlalchemy import delete

from ballotbox.database.models import Candidate, Voter
from ballotbox.database.store import restart_id_sequences, transaction, voting_status_row

logger = logging.getLogger(__name__)


class VotingSession:
    """Owns the global voting window flag: Inactive <-> Active, no expiry."""

    def start_voting(self) -> None:
        self._set_active(True)
        logger.info("Voting started")

    def stop_voting(self) -> None:
        self._set_active(False)
        logger.info("Voting stopped")

    def is_active(self) -> bool:
        with transaction() as session:
            return bool(voting_status_row(session).is_active)

    def reset_all(self) -> None:
        """Wipe every candidate and voter and close voting. Positions are kept.

        Irreversible: all tallies and voting history are lost.
        """
        with transaction() as session:
            candidates = session.execute(delete(Candidate)).rowcount
            voters = session.execute(delete(Voter)).rowcount
            voting_status_row(session).is_active = False
            session.flush()
            restart_id_sequences(session, [Candidate.__tablename__, Voter.__tablename__])
        logger.warning("Election reset: %d candidate(s) and %d voter(s) removed, voting inactive",
                       candidates, voters)

    def _set_active(self, active: bool) -> None:
        with transaction() as session:
            voting_status_row(session).is_active = active
