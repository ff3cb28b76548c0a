# ballotbox/election/records.py

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CandidateRecord:
    id: int
    name: str
    symbol: str
    age: int
    position: str
    photo: Optional[bytes] = field(default=None, repr=False)
    bio: Optional[str] = None
    votes: int = 0

    @classmethod
    def from_model(cls, candidate) -> "CandidateRecord":
        return cls(
            id=candidate.id,
            name=candidate.name,
            symbol=candidate.symbol,
            age=candidate.age,
            position=candidate.position,
            photo=candidate.photo,
            bio=candidate.bio,
            votes=candidate.votes,
        )

    @property
    def has_photo(self) -> bool:
        return self.photo is not None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "age": self.age,
            "position": self.position,
            "bio": self.bio,
            "votes": self.votes,
            "has_photo": self.has_photo,
        }


@dataclass(frozen=True)
class VoterRecord:
    id: int
    name: str
    dob: date
    has_voted: bool
    verified: bool

    @classmethod
    def from_model(cls, voter) -> "VoterRecord":
        return cls(
            id=voter.id,
            name=voter.name,
            dob=voter.dob,
            has_voted=bool(voter.has_voted),
            verified=bool(voter.verified),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "dob": self.dob.isoformat(),
            "has_voted": self.has_voted,
            "verified": self.verified,
        }


@dataclass
class CandidateUpdate:
    """Partial update for a candidate. Fields left as None are not touched.

    There is deliberately no ``votes`` field: tallies only move through the
    ballot engine. Leaving ``photo`` unset keeps the stored photo.
    """
    name: Optional[str] = None
    symbol: Optional[str] = None
    age: Optional[int] = None
    position: Optional[str] = None
    photo: Optional[bytes] = None
    bio: Optional[str] = None

    def changes(self) -> Dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class VoterUpdate:
    """Partial update for a voter. Fields left as None are not touched.

    ``has_voted`` and ``verified`` bypass the ballot engine and the
    verification path; setting them can desynchronise voting history.
    """
    name: Optional[str] = None
    password: Optional[str] = None
    dob: Optional[date] = None
    has_voted: Optional[bool] = None
    verified: Optional[bool] = None

    def changes(self) -> Dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class BallotReceipt:
    voter_id: int
    selections: Dict[str, int]


@dataclass(frozen=True)
class PositionResult:
    position: str
    candidates: List[CandidateRecord]

    @property
    def total_votes(self) -> int:
        return sum(c.votes for c in self.candidates)

    @property
    def leaders(self) -> List[CandidateRecord]:
        if not self.candidates or self.total_votes == 0:
            return []
        top = max(c.votes for c in self.candidates)
        return [c for c in self.candidates if c.votes == top]

    def to_dict(self) -> Dict:
        return {
            "position": self.position,
            "total_votes": self.total_votes,
            "candidates": [c.to_dict() for c in self.candidates],
            "leaders": [c.id for c in self.leaders],
        }
