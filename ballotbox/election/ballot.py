# ballotbox/election/ballot.py

import logging
from collections import OrderedDict
from typing import Dict, List

from sqlalchemy import select, update

from ballotbox.database.models import Candidate, Position, Voter
from ballotbox.database.store import transaction, voting_status_row
from ballotbox.election.errors import (
    AlreadyVoted,
    InvalidCandidateReference,
    NotVerified,
    VoterNotFound,
    VotingInactive,
)
from ballotbox.election.records import BallotReceipt, CandidateRecord, PositionResult
from ballotbox.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


def _check_eligible(voter, voter_id: int) -> None:
    if voter is None:
        raise VoterNotFound(f"Voter {voter_id} not found")
    if not voter.verified:
        raise NotVerified("Your account is not verified by admin")
    if voter.has_voted:
        raise AlreadyVoted()


class BallotEngine:
    """Casts ballots: one candidate per contested position, once per voter."""

    def __init__(self, validator: InputValidator = None):
        self.validator = validator or InputValidator()

    def cast_vote(self, voter_id, selections: Dict[str, int]) -> BallotReceipt:
        """Record a ballot atomically.

        Either every selected candidate gains exactly one vote and the voter
        is marked as having voted, or nothing changes. Tallies are bumped
        with ``votes = votes + 1`` in SQL so concurrent ballots never lose
        an increment, and the voter row is claimed with a conditional update
        so only one of several concurrent ballots by the same voter commits.
        """
        voter_id = self.validator.parse_id(voter_id, 'voter id')
        ballot = self.validator.validate_selections(selections)

        with transaction() as session:
            # A closed window rejects every ballot, eligible or not.
            if not voting_status_row(session).is_active:
                raise VotingInactive()

            _check_eligible(session.get(Voter, voter_id), voter_id)

            claimed = session.execute(
                update(Voter)
                .where(Voter.id == voter_id, Voter.has_voted.is_(False), Voter.verified.is_(True))
                .values(has_voted=True)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                current = session.execute(
                    select(Voter).where(Voter.id == voter_id).execution_options(populate_existing=True)
                ).scalar_one_or_none()
                _check_eligible(current, voter_id)
                raise AlreadyVoted()

            # Ascending id order keeps row locks ordered across concurrent ballots.
            for position, candidate_id in sorted(ballot.items(), key=lambda item: item[1]):
                counted = session.execute(
                    update(Candidate)
                    .where(Candidate.id == candidate_id, Candidate.position == position)
                    .values(votes=Candidate.votes + 1)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if counted != 1:
                    raise InvalidCandidateReference(
                        f"Candidate {candidate_id} is not standing for '{position}'"
                    )

        logger.info("Vote cast by voter %d for %d position(s)", voter_id, len(ballot))
        return BallotReceipt(voter_id=voter_id, selections=dict(ballot))

    def results(self) -> List[PositionResult]:
        """Tallies grouped by position, highest vote count first."""
        with transaction() as session:
            positions = session.execute(select(Position.name).order_by(Position.name)).scalars().all()
            candidates = session.execute(
                select(Candidate).order_by(Candidate.votes.desc(), Candidate.id)
            ).scalars().all()
            grouped = OrderedDict((name, []) for name in positions)
            for candidate in candidates:
                grouped.setdefault(candidate.position, []).append(CandidateRecord.from_model(candidate))
        return [PositionResult(position=name, candidates=grouped[name]) for name in sorted(grouped)]
