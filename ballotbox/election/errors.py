# ballotbox/election/errors.py

# Failure taxonomy shared by the election services. Each error carries the
# kind name reported to callers and the HTTP status the routes answer with.


class ElectionError(Exception):
    kind = "ElectionError"
    status_code = 400
    default_message = "Election operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"error": self.kind, "message": self.message}


# ---- Bad or missing input, rejected before any store access ----

class ValidationError(ElectionError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid input"

class NoSelection(ValidationError):
    kind = "NoSelection"
    default_message = "Select a candidate for at least one position"


# ---- Expected business-rule rejections ----

class EligibilityError(ElectionError):
    kind = "EligibilityError"
    status_code = 403
    default_message = "Operation not allowed"

class VoterNotEligible(EligibilityError):
    kind = "VoterNotEligible"
    default_message = "Voter is not eligible to vote"

class NotVerified(VoterNotEligible):
    kind = "NotVerified"
    default_message = "Account not verified by admin yet"

class AlreadyVoted(EligibilityError):
    kind = "AlreadyVoted"
    status_code = 409
    default_message = "You have already voted"

class VotingInactive(EligibilityError):
    kind = "VotingInactive"
    default_message = "Voting is not active now"

class Underage(EligibilityError):
    kind = "Underage"
    default_message = "You must be at least 18 to register"

class DuplicateVoter(EligibilityError):
    kind = "DuplicateVoter"
    status_code = 409
    default_message = "User with this name already exists"

class ResultsUnavailable(EligibilityError):
    kind = "ResultsUnavailable"
    default_message = "Results are available once voting has closed"

class InvalidCredentials(EligibilityError):
    kind = "InvalidCredentials"
    status_code = 401
    default_message = "Invalid name or password"


# ---- Referential integrity ----

class ReferentialIntegrityError(ElectionError):
    kind = "ReferentialIntegrityError"
    status_code = 409
    default_message = "Operation violates record references"

class PositionInUse(ReferentialIntegrityError):
    kind = "PositionInUse"
    default_message = "Position has candidates and cannot be deleted"

class InvalidCandidateReference(ReferentialIntegrityError):
    kind = "InvalidCandidateReference"
    status_code = 422
    default_message = "Candidate does not exist for the selected position"


# ---- Missing records ----

class RecordNotFound(ElectionError):
    kind = "RecordNotFound"
    status_code = 404
    default_message = "Record not found"

class CandidateNotFound(RecordNotFound):
    kind = "CandidateNotFound"
    default_message = "Candidate not found"

class VoterNotFound(RecordNotFound, VoterNotEligible):
    kind = "VoterNotFound"
    status_code = 404
    default_message = "Voter not found"


# ---- Store failures ----

class PersistenceError(ElectionError):
    kind = "PersistenceError"
    status_code = 500
    default_message = "The election store is unavailable, please try again"

class ConstraintViolation(PersistenceError):
    kind = "ConstraintViolation"
    status_code = 409
    default_message = "The change conflicts with existing records"
