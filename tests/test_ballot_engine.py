import threading
from datetime import date

import pytest

from ballotbox import app as flask_app
from ballotbox.election.errors import (
    AlreadyVoted,
    InvalidCandidateReference,
    NoSelection,
    NotVerified,
    ValidationError,
    VoterNotEligible,
    VoterNotFound,
    VotingInactive,
)
from ballotbox.election.records import VoterUpdate


@pytest.fixture
def election(registry, voting):
    """Two contested positions with two candidates each, voting open."""
    president_a = registry.add_candidate("Ann", "Star", 45, "President")
    president_b = registry.add_candidate("Ben", "Moon", 52, "President")
    treasurer = registry.add_candidate("Cat", "Sun", 38, "Treasurer")
    registry.add_candidate("Dan", "Tree", 41, "Treasurer")
    voting.start_voting()
    return {"president_a": president_a, "president_b": president_b, "treasurer": treasurer}


def tallies(registry):
    return {c.id: c.votes for c in registry.list_candidates()}


def test_alice_votes_once(registry, directory, voting, engine):
    """Register on her 18th birthday, get verified, vote, and be refused a second time."""
    alice = directory.register("alice", "wonderland", date(2008, 10, 19))
    assert alice.verified is False
    candidate_x = registry.add_candidate("Xavier", "Lion", 40, "President")

    directory.set_verified(alice.id, True)
    voting.start_voting()

    engine.cast_vote(alice.id, {"President": candidate_x.id})
    assert registry.get_candidate(candidate_x.id).votes == 1
    assert directory.get_voter(alice.id).has_voted is True

    with pytest.raises(AlreadyVoted):
        engine.cast_vote(alice.id, {"President": candidate_x.id})
    assert registry.get_candidate(candidate_x.id).votes == 1


def test_full_ballot_counts_every_position(election, registry, make_voter, engine):
    voter = make_voter("bob")
    receipt = engine.cast_vote(voter.id, {
        "President": election["president_b"].id,
        "Treasurer": election["treasurer"].id,
    })

    assert receipt.voter_id == voter.id
    counts = tallies(registry)
    assert counts[election["president_b"].id] == 1
    assert counts[election["treasurer"].id] == 1
    assert counts[election["president_a"].id] == 0


def test_partial_ballot_leaves_other_positions_untouched(election, registry, make_voter, engine):
    voter = make_voter("carol")
    before = tallies(registry)

    engine.cast_vote(voter.id, {"President": election["president_a"].id, "Treasurer": None})

    after = tallies(registry)
    assert after[election["president_a"].id] == before[election["president_a"].id] + 1
    assert sum(after.values()) == sum(before.values()) + 1


@pytest.mark.parametrize("selections", [{}, None, {"President": None}])
def test_empty_ballot_is_rejected(election, make_voter, engine, directory, selections):
    voter = make_voter("dave")
    with pytest.raises(NoSelection):
        engine.cast_vote(voter.id, selections)
    assert directory.get_voter(voter.id).has_voted is False


@pytest.mark.parametrize("verified,has_voted", [(False, False), (True, True), (False, True)])
def test_inactive_voting_wins_over_eligibility(election, registry, voting, make_voter, engine, directory,
                                               verified, has_voted):
    voter = make_voter("ivan", verified=verified)
    if has_voted:
        directory.edit_voter(voter.id, VoterUpdate(has_voted=True))
    voting.stop_voting()
    before = tallies(registry)

    with pytest.raises(VotingInactive):
        engine.cast_vote(voter.id, {"President": election["president_a"].id})

    assert tallies(registry) == before
    assert directory.get_voter(voter.id).has_voted is has_voted


def test_inactive_voting_for_unknown_voter(election, voting, engine):
    voting.stop_voting()
    with pytest.raises(VotingInactive):
        engine.cast_vote(999, {"President": election["president_a"].id})


def test_malformed_candidate_id_is_a_validation_error(election, make_voter, engine):
    voter = make_voter("erin")
    with pytest.raises(ValidationError):
        engine.cast_vote(voter.id, {"President": "not-a-number"})


def test_inactive_voting_changes_nothing(election, registry, voting, make_voter, engine, directory):
    voter = make_voter("frank")
    voting.stop_voting()
    before = tallies(registry)

    with pytest.raises(VotingInactive):
        engine.cast_vote(voter.id, {"President": election["president_a"].id})

    assert tallies(registry) == before
    assert directory.get_voter(voter.id).has_voted is False


def test_unverified_voter_is_not_eligible(election, registry, make_voter, engine):
    voter = make_voter("grace", verified=False)
    with pytest.raises(NotVerified) as excinfo:
        engine.cast_vote(voter.id, {"President": election["president_a"].id})
    assert isinstance(excinfo.value, VoterNotEligible)
    assert registry.get_candidate(election["president_a"].id).votes == 0


def test_unknown_voter(election, engine):
    with pytest.raises(VoterNotFound) as excinfo:
        engine.cast_vote(999, {"President": election["president_a"].id})
    assert isinstance(excinfo.value, VoterNotEligible)


def test_candidate_under_wrong_position_is_rejected(election, registry, make_voter, engine, directory):
    voter = make_voter("heidi")
    with pytest.raises(InvalidCandidateReference):
        engine.cast_vote(voter.id, {"President": election["treasurer"].id})
    assert directory.get_voter(voter.id).has_voted is False
    assert registry.get_candidate(election["treasurer"].id).votes == 0


def test_bad_second_selection_rolls_back_the_first(election, registry, make_voter, engine, directory):
    voter = make_voter("ivan")
    before = tallies(registry)

    with pytest.raises(InvalidCandidateReference):
        engine.cast_vote(voter.id, {"President": election["president_a"].id, "Treasurer": 4242})

    assert tallies(registry) == before
    assert directory.get_voter(voter.id).has_voted is False


def test_deleted_candidate_cannot_be_voted_for(election, registry, make_voter, engine):
    voter = make_voter("judy")
    registry.delete_candidate(election["president_b"].id)
    with pytest.raises(InvalidCandidateReference):
        engine.cast_vote(voter.id, {"President": election["president_b"].id})


def test_concurrent_voters_do_not_lose_updates(election, registry, make_voter, engine):
    voters = [make_voter(f"voter{i}") for i in range(10)]
    target = election["president_a"].id
    barrier = threading.Barrier(len(voters))
    errors = []

    def cast(voter_id):
        with flask_app.app_context():
            barrier.wait()
            try:
                engine.cast_vote(voter_id, {"President": target})
            except Exception as e:  # collected and asserted below
                errors.append(e)

    threads = [threading.Thread(target=cast, args=(v.id,)) for v in voters]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.get_candidate(target).votes == len(voters)


def test_concurrent_ballots_for_one_voter_count_once(election, registry, make_voter, engine):
    voter = make_voter("mallory")
    target = election["president_a"].id
    attempts = 6
    barrier = threading.Barrier(attempts)
    outcomes = []
    lock = threading.Lock()

    def cast():
        with flask_app.app_context():
            barrier.wait()
            try:
                engine.cast_vote(voter.id, {"President": target})
                result = "ok"
            except AlreadyVoted:
                result = "already"
            except Exception as e:
                result = e
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=cast) for _ in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("already") == attempts - 1
    assert registry.get_candidate(target).votes == 1


def test_results_group_by_position(election, make_voter, engine):
    for name in ("kim", "lee"):
        engine.cast_vote(make_voter(name).id, {"President": election["president_b"].id})
    engine.cast_vote(make_voter("max").id, {"President": election["president_a"].id})

    results = {r.position: r for r in engine.results()}

    assert list(results) == ["President", "Treasurer"]
    president = results["President"]
    assert president.total_votes == 3
    assert [c.id for c in president.candidates] == [election["president_b"].id, election["president_a"].id]
    assert [c.id for c in president.leaders] == [election["president_b"].id]
    assert results["Treasurer"].leaders == []
