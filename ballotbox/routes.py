# ballotbox/routes.py

# JSON API over the election services. Admin and voter sessions are JWT
# access tokens; every ElectionError is turned into {"error", "message"}.

from io import BytesIO

from flask import request, jsonify, send_file, abort
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from ballotbox import app, limiter, db
from ballotbox.authentication.credentials import authenticate_admin
from ballotbox.authentication.rbac import Permission, UserRole, rbac_service, require_permission, current_role
from ballotbox.election.ballot import BallotEngine
from ballotbox.election.registry import ElectionRegistry
from ballotbox.election.session import VotingSession
from ballotbox.election.voters import VoterDirectory
from ballotbox.election.errors import (
    ElectionError,
    InvalidCredentials,
    NotVerified,
    PersistenceError,
    ResultsUnavailable,
    ValidationError,
)
from ballotbox.election.records import CandidateUpdate, VoterUpdate
from ballotbox.security.input_validator import InputValidator
from ballotbox.security.token_manager import TokenManager

validator = InputValidator(max_photo_bytes=app.config['MAX_PHOTO_BYTES'])
registry = ElectionRegistry(validator)
voter_directory = VoterDirectory(validator, min_age=app.config['MIN_VOTER_AGE'])
voting_session = VotingSession()
ballot_engine = BallotEngine(validator)
token_manager = TokenManager(app)

CANDIDATE_FIELDS = {'name', 'symbol', 'age', 'position', 'photo', 'bio'}
VOTER_FIELDS = {'name', 'password', 'dob', 'has_voted', 'verified'}


def _json_body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _reject_unknown(body, allowed):
    if 'votes' in body:
        raise ValidationError("Vote tallies cannot be edited")
    unknown = set(body) - allowed
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")


@app.errorhandler(ElectionError)
def handle_election_error(error):
    if isinstance(error, PersistenceError):
        app.logger.error(f"{error.kind}: {error.message}")
    else:
        app.logger.info(f"Request rejected: {error.kind}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'error': error.name.replace(' ', ''), 'message': error.description}), error.code


@app.get('/health')
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        app.logger.error(f"Health check failed: {e}")
        db_ok = False
    finally:
        db.session.close()
    return jsonify({'db': {'ok': db_ok}, 'overall_ok': db_ok}), 200 if db_ok else 503


# ---------------- Sessions ----------------

@app.post('/admin/login')
@limiter.limit("20/minute")
def admin_login():
    body = _json_body()
    try:
        admin_id = authenticate_admin(body.get('username'), body.get('password'))
    except InvalidCredentials:
        return jsonify({'error': 'LoginFailed', 'message': 'Login failed'}), 401
    app.logger.info("Admin login successful")
    token = token_manager.generate_token(admin_id, UserRole.ADMIN.value)
    return jsonify({'access_token': token, 'role': UserRole.ADMIN.value})


@app.post('/login')
@limiter.limit("20/minute")
def voter_login():
    body = _json_body()
    try:
        voter = voter_directory.authenticate(body.get('name'), body.get('password'))
    except (InvalidCredentials, NotVerified) as e:
        # Same answer for both so login does not reveal which accounts exist.
        app.logger.info(f"Voter login failed: {e.kind}")
        return jsonify({'error': 'LoginFailed', 'message': 'Login failed'}), 401
    token = token_manager.generate_token(voter.id, UserRole.VOTER.value)
    return jsonify({'access_token': token, 'role': UserRole.VOTER.value, 'voter': voter.to_dict()})


@app.post('/register')
def register():
    body = _json_body()
    voter = voter_directory.register(body.get('name'), body.get('password'), body.get('dob'))
    return jsonify({'message': 'Registration successful. Awaiting admin verification.',
                    'voter': voter.to_dict()}), 201


@app.get('/me')
@require_permission(Permission.VIEW_OWN_STATUS)
def me():
    voter = voter_directory.get_voter(token_manager.get_identity())
    return jsonify(voter.to_dict())


# ---------------- Positions ----------------

@app.get('/positions')
def list_positions():
    return jsonify({'positions': registry.list_positions()})


@app.post('/positions')
@require_permission(Permission.MANAGE_POSITIONS)
def add_position():
    name = validator.validate_position_name(_json_body().get('name'))
    created = registry.add_position(name)
    return jsonify({'name': name, 'created': created}), 201 if created else 200


@app.delete('/positions/<path:name>')
@require_permission(Permission.MANAGE_POSITIONS)
def delete_position(name):
    if not registry.delete_position(name):
        abort(404, description="Position not found")
    return jsonify({'message': 'Position deleted.', 'name': name})


# ---------------- Candidates ----------------

@app.get('/candidates')
def list_candidates():
    candidates = registry.list_candidates(request.args.get('position'))
    return jsonify({'candidates': [c.to_dict() for c in candidates]})


@app.post('/candidates')
@require_permission(Permission.MANAGE_CANDIDATES)
def add_candidate():
    body = _json_body()
    _reject_unknown(body, CANDIDATE_FIELDS)
    candidate = registry.add_candidate(
        body.get('name'),
        body.get('symbol'),
        body.get('age'),
        body.get('position'),
        photo=validator.decode_photo(body.get('photo')),
        bio=body.get('bio'),
    )
    return jsonify(candidate.to_dict()), 201


@app.get('/candidates/<int:candidate_id>')
def get_candidate(candidate_id):
    return jsonify(registry.get_candidate(candidate_id).to_dict())


@app.get('/candidates/<int:candidate_id>/photo')
def get_candidate_photo(candidate_id):
    candidate = registry.get_candidate(candidate_id)
    if candidate.photo is None:
        abort(404, description="Candidate has no photo")
    return send_file(BytesIO(candidate.photo), mimetype='application/octet-stream',
                     download_name=f'candidate-{candidate_id}')


@app.patch('/candidates/<int:candidate_id>')
@require_permission(Permission.MANAGE_CANDIDATES)
def edit_candidate(candidate_id):
    body = _json_body()
    _reject_unknown(body, CANDIDATE_FIELDS)
    update = CandidateUpdate(
        name=body.get('name'),
        symbol=body.get('symbol'),
        age=body.get('age'),
        position=body.get('position'),
        photo=validator.decode_photo(body.get('photo')),
        bio=body.get('bio'),
    )
    return jsonify(registry.edit_candidate(candidate_id, update).to_dict())


@app.delete('/candidates/<int:candidate_id>')
@require_permission(Permission.MANAGE_CANDIDATES)
def delete_candidate(candidate_id):
    if not registry.delete_candidate(candidate_id):
        abort(404, description="Candidate not found")
    return jsonify({'message': 'Candidate deleted.', 'id': candidate_id})


# ---------------- Voters (admin) ----------------

@app.get('/voters')
@require_permission(Permission.MANAGE_VOTERS)
def list_voters():
    verified = request.args.get('verified')
    voters = voter_directory.list_voters(verified)
    return jsonify({'voters': [v.to_dict() for v in voters]})


@app.post('/voters/<int:voter_id>/verify')
@require_permission(Permission.MANAGE_VOTERS)
def verify_voter(voter_id):
    verified = _json_body().get('verified', True)
    return jsonify(voter_directory.set_verified(voter_id, verified).to_dict())


@app.patch('/voters/<int:voter_id>')
@require_permission(Permission.MANAGE_VOTERS)
def edit_voter(voter_id):
    body = _json_body()
    _reject_unknown(body, VOTER_FIELDS)
    update = VoterUpdate(**{field: body.get(field) for field in VOTER_FIELDS})
    return jsonify(voter_directory.edit_voter(voter_id, update).to_dict())


@app.delete('/voters/<int:voter_id>')
@require_permission(Permission.MANAGE_VOTERS)
def delete_voter(voter_id):
    if not voter_directory.delete_voter(voter_id):
        abort(404, description="Voter not found")
    return jsonify({'message': 'Voter deleted.', 'id': voter_id})


# ---------------- Voting window ----------------

@app.get('/voting/status')
def voting_status():
    return jsonify({'active': voting_session.is_active()})


@app.post('/voting/start')
@require_permission(Permission.MANAGE_ELECTIONS)
def start_voting():
    voting_session.start_voting()
    return jsonify({'active': True, 'message': 'Voting started!'})


@app.post('/voting/stop')
@require_permission(Permission.MANAGE_ELECTIONS)
def stop_voting():
    voting_session.stop_voting()
    return jsonify({'active': False, 'message': 'Voting stopped!'})


@app.post('/voting/reset')
@require_permission(Permission.MANAGE_ELECTIONS)
def reset_voting():
    if _json_body().get('confirm') is not True:
        raise ValidationError("Reset deletes all candidates and voters; send {\"confirm\": true}")
    voting_session.reset_all()
    return jsonify({'active': False, 'message': 'All votes, candidates and voters reset. Voting inactive.'})


# ---------------- Ballots ----------------

@app.post('/vote')
@limiter.limit("10/minute")
@require_permission(Permission.VOTE)
def vote():
    voter_id = token_manager.get_identity()
    receipt = ballot_engine.cast_vote(voter_id, _json_body().get('selections'))
    return jsonify({'message': 'Vote cast successfully', 'voter_id': receipt.voter_id,
                    'selections': receipt.selections})


@app.get('/results')
@require_permission(Permission.VIEW_RESULTS)
def results():
    if not rbac_service.has_permission(current_role(), Permission.VIEW_LIVE_RESULTS) and voting_session.is_active():
        raise ResultsUnavailable()
    return jsonify({'results': [r.to_dict() for r in ballot_engine.results()]})
