# ballotbox/election/voters.py

import logging
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy import delete, select

from ballotbox.database.models import Voter
from ballotbox.database.store import transaction
from ballotbox.election.errors import (
    ConstraintViolation,
    DuplicateVoter,
    InvalidCredentials,
    NotVerified,
    Underage,
    ValidationError,
    VoterNotFound,
)
from ballotbox.election.records import VoterRecord, VoterUpdate
from ballotbox.security.input_validator import InputValidator

logger = logging.getLogger(__name__)

MIN_VOTER_AGE = 18


def age_on(dob: date, today: date) -> int:
    """Whole years between dob and today."""
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


class VoterDirectory:
    """Voter registration, verification and admin-side maintenance."""

    def __init__(self, validator: InputValidator = None, clock: Callable[[], date] = date.today,
                 min_age: int = MIN_VOTER_AGE):
        self.validator = validator or InputValidator()
        self.clock = clock
        self.min_age = min_age

    def register(self, name, password, dob) -> VoterRecord:
        name = self.validator.require_string(name, 'Name', max_length=100)
        password = self.validator.validate_password(password)
        dob = self._parse_dob(dob)
        age = age_on(dob, self.clock())
        if age < self.min_age:
            logger.info("Registration refused for '%s': age %d", name, age)
            raise Underage(f"You must be at least {self.min_age} to register. Age: {age}")

        try:
            with transaction() as session:
                taken = session.execute(select(Voter.id).where(Voter.name == name)).first()
                if taken:
                    raise DuplicateVoter()
                voter = Voter(name=name, password=password, dob=dob, has_voted=False, verified=False)
                session.add(voter)
                session.flush()
                record = VoterRecord.from_model(voter)
        except ConstraintViolation:
            raise DuplicateVoter()
        logger.info("Voter %d '%s' registered, awaiting admin verification", record.id, record.name)
        return record

    def authenticate(self, name, password) -> VoterRecord:
        if not isinstance(name, str) or not isinstance(password, str):
            raise InvalidCredentials()
        with transaction() as session:
            voter = session.execute(
                select(Voter).where(Voter.name == name.strip(), Voter.password == password)
            ).scalar_one_or_none()
            if voter is None:
                raise InvalidCredentials()
            if not voter.verified:
                raise NotVerified()
            return VoterRecord.from_model(voter)

    def set_verified(self, voter_id, verified: bool) -> VoterRecord:
        voter_id = self.validator.parse_id(voter_id, 'voter id')
        verified = self.validator.parse_bool(verified, 'verified')
        with transaction() as session:
            voter = session.get(Voter, voter_id)
            if voter is None:
                raise VoterNotFound(f"Voter {voter_id} not found")
            voter.verified = verified
            session.flush()
            record = VoterRecord.from_model(voter)
        logger.info("Voter %d verification set to %s", voter_id, verified)
        return record

    def edit_voter(self, voter_id, update: VoterUpdate) -> VoterRecord:
        voter_id = self.validator.parse_id(voter_id, 'voter id')
        changes = self._clean_voter_update(update).changes()
        try:
            with transaction() as session:
                if 'name' in changes:
                    clash = session.execute(
                        select(Voter.id).where(Voter.name == changes['name'], Voter.id != voter_id)
                    ).first()
                    if clash:
                        raise DuplicateVoter()
                voter = session.get(Voter, voter_id)
                if voter is None:
                    raise VoterNotFound(f"Voter {voter_id} not found")
                for field, value in changes.items():
                    setattr(voter, field, value)
                session.flush()
                record = VoterRecord.from_model(voter)
        except ConstraintViolation:
            raise DuplicateVoter()
        if 'has_voted' in changes or 'verified' in changes:
            logger.warning("Voter %d voting flags force-set by admin: %s", voter_id,
                           {k: changes[k] for k in ('has_voted', 'verified') if k in changes})
        logger.info("Voter %d updated (%s)", voter_id, ", ".join(sorted(changes)) or "no changes")
        return record

    def delete_voter(self, voter_id) -> bool:
        voter_id = self.validator.parse_id(voter_id, 'voter id')
        with transaction() as session:
            removed = session.execute(delete(Voter).where(Voter.id == voter_id)).rowcount
        if removed:
            logger.info("Voter %d deleted", voter_id)
        return bool(removed)

    def get_voter(self, voter_id) -> VoterRecord:
        voter_id = self.validator.parse_id(voter_id, 'voter id')
        with transaction() as session:
            voter = session.get(Voter, voter_id)
            if voter is None:
                raise VoterNotFound(f"Voter {voter_id} not found")
            return VoterRecord.from_model(voter)

    def list_voters(self, verified: Optional[bool] = None) -> List[VoterRecord]:
        query = select(Voter).order_by(Voter.id)
        if verified is not None:
            query = query.where(Voter.verified.is_(self.validator.parse_bool(verified, 'verified')))
        with transaction() as session:
            return [VoterRecord.from_model(v) for v in session.execute(query).scalars()]

    def _parse_dob(self, dob) -> date:
        dob = self.validator.parse_date(dob)
        if dob > self.clock():
            raise ValidationError("Date of birth cannot be in the future")
        return dob

    def _clean_voter_update(self, update: VoterUpdate) -> VoterUpdate:
        v = self.validator
        return VoterUpdate(
            name=v.require_string(update.name, 'Name', max_length=100) if update.name is not None else None,
            password=v.validate_password(update.password) if update.password is not None else None,
            dob=self._parse_dob(update.dob) if update.dob is not None else None,
            has_voted=v.parse_bool(update.has_voted, 'has_voted') if update.has_voted is not None else None,
            verified=v.parse_bool(update.verified, 'verified') if update.verified is not None else None,
        )
