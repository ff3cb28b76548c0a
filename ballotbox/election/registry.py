# ballotbox/election/registry.py

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select

from ballotbox.database.models import Candidate, Position
from ballotbox.database.store import transaction
from ballotbox.election.errors import CandidateNotFound, ConstraintViolation, PositionInUse
from ballotbox.election.records import CandidateRecord, CandidateUpdate
from ballotbox.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


def _ensure_position(session, name: str) -> bool:
    if session.get(Position, name) is not None:
        return False
    session.add(Position(name=name))
    session.flush()
    return True


class ElectionRegistry:
    """Positions and the candidates standing for them."""

    def __init__(self, validator: InputValidator = None):
        self.validator = validator or InputValidator()

    # ---------------- Positions ----------------

    def add_position(self, name: str) -> bool:
        name = self.validator.validate_position_name(name)
        try:
            with transaction() as session:
                created = _ensure_position(session, name)
        except ConstraintViolation:
            # Lost a race with a concurrent insert of the same name.
            return False
        if created:
            logger.info("Position '%s' added", name)
        return created

    def delete_position(self, name: str) -> bool:
        name = self.validator.validate_position_name(name)
        with transaction() as session:
            in_use = session.execute(
                select(func.count()).select_from(Candidate).where(Candidate.position == name)
            ).scalar_one()
            if in_use:
                logger.info("Refused to delete position '%s': %d candidate(s) reference it", name, in_use)
                raise PositionInUse(f"Position '{name}' has {in_use} candidate(s) and cannot be deleted")
            removed = session.execute(delete(Position).where(Position.name == name)).rowcount
        if removed:
            logger.info("Position '%s' deleted", name)
        return bool(removed)

    def list_positions(self) -> List[str]:
        with transaction() as session:
            return list(session.execute(select(Position.name).order_by(Position.name)).scalars())

    # ---------------- Candidates ----------------

    def add_candidate(self, name, symbol, age, position, photo: Optional[bytes] = None,
                      bio: Optional[str] = None) -> CandidateRecord:
        candidate = Candidate(
            name=self.validator.require_string(name, 'Name', max_length=100),
            symbol=self.validator.require_string(symbol, 'Symbol', max_length=100),
            age=self.validator.parse_age(age),
            position=self.validator.validate_position_name(position),
            photo=self.validator.validate_photo(photo),
            bio=self._clean_bio(bio),
            votes=0,
        )
        with transaction() as session:
            _ensure_position(session, candidate.position)
            session.add(candidate)
            session.flush()
            record = CandidateRecord.from_model(candidate)
        logger.info("Candidate %d '%s' added for '%s'", record.id, record.name, record.position)
        return record

    def edit_candidate(self, candidate_id, update: CandidateUpdate) -> CandidateRecord:
        candidate_id = self.validator.parse_id(candidate_id, 'candidate id')
        changes = self._clean_candidate_update(update).changes()
        with transaction() as session:
            candidate = session.get(Candidate, candidate_id)
            if candidate is None:
                raise CandidateNotFound(f"Candidate {candidate_id} not found")
            if 'position' in changes:
                _ensure_position(session, changes['position'])
            for field, value in changes.items():
                setattr(candidate, field, value)
            session.flush()
            record = CandidateRecord.from_model(candidate)
        logger.info("Candidate %d updated (%s)", candidate_id, ", ".join(sorted(changes)) or "no changes")
        return record

    def delete_candidate(self, candidate_id) -> bool:
        candidate_id = self.validator.parse_id(candidate_id, 'candidate id')
        with transaction() as session:
            removed = session.execute(delete(Candidate).where(Candidate.id == candidate_id)).rowcount
        if removed:
            logger.info("Candidate %d deleted", candidate_id)
        return bool(removed)

    def get_candidate(self, candidate_id) -> CandidateRecord:
        candidate_id = self.validator.parse_id(candidate_id, 'candidate id')
        with transaction() as session:
            candidate = session.get(Candidate, candidate_id)
            if candidate is None:
                raise CandidateNotFound(f"Candidate {candidate_id} not found")
            return CandidateRecord.from_model(candidate)

    def list_candidates(self, position: Optional[str] = None) -> List[CandidateRecord]:
        query = select(Candidate).order_by(Candidate.id)
        if position is not None:
            query = query.where(Candidate.position == self.validator.validate_position_name(position))
        with transaction() as session:
            return [CandidateRecord.from_model(c) for c in session.execute(query).scalars()]

    def _clean_bio(self, bio):
        if bio is None:
            return None
        return self.validator.sanitize_string(bio, field='Bio', max_length=5000, allow_html=True)

    def _clean_candidate_update(self, update: CandidateUpdate) -> CandidateUpdate:
        v = self.validator
        return CandidateUpdate(
            name=v.require_string(update.name, 'Name', max_length=100) if update.name is not None else None,
            symbol=v.require_string(update.symbol, 'Symbol', max_length=100) if update.symbol is not None else None,
            age=v.parse_age(update.age) if update.age is not None else None,
            position=v.validate_position_name(update.position) if update.position is not None else None,
            photo=v.validate_photo(update.photo),
            bio=self._clean_bio(update.bio),
        )
