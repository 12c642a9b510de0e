"""Brackets: tree shape, byes, scoring from bouts and winner/loser routing."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from judo.errors import InvalidArgument, InvalidState
from judo.models.athlete import Athlete
from judo.models.bracket import BracketMatch
from judo.models.team import Team
from judo.services import bracket_service
from judo.services.bracket_service import next_slot, pair_teams, start_phase_for


@pytest.mark.parametrize(
    "count,phase",
    [(2, "finale"), (3, "demi"), (4, "demi"), (5, "quart"), (8, "quart"), (9, "huitieme"), (16, "huitieme"), (17, "seizieme")],
)
def test_start_phase_for(count, phase):
    assert start_phase_for(count) == phase


def test_next_slot():
    assert next_slot(1) == (0, "A")
    assert next_slot(2) == (0, "B")
    assert next_slot(3) == (1, "A")
    assert next_slot(8) == (3, "B")


def test_pair_teams_pads_odd_count():
    assert pair_teams(["a", "b", "c"]) == [("a", "b"), ("c", None)]


def _teams(session: Session, *team_ids: str):
    for team_id in team_ids:
        session.add(Team(id=team_id, name=f"Club {team_id}"))
        session.add(Athlete(name=f"Athlete {team_id}", sex="M", weight="-81", team_id=team_id))
    session.commit()


def _match(session: Session, bracket_type: str, phase: str, number: int) -> BracketMatch:
    return bracket_service.get_match(session, bracket_type, phase, number)


def test_tree_for_four_teams(session: Session):
    _teams(session, "T1", "T2", "T3", "T4")
    result = bracket_service.create_brackets(session, ["T1", "T2", "T3", "T4"], seed=11)

    assert result["start_phase_principal"] == "demi"
    assert result["start_phase_consolante"] is None
    assert result["matches"] == 5

    demis = session.exec(select(BracketMatch).where(BracketMatch.phase == "demi")).all()
    seeded = {t for m in demis for t in (m.equipe_a, m.equipe_b)}
    assert seeded == {"T1", "T2", "T3", "T4"}

    final = _match(session, "principal", "finale", 1)
    assert final.equipe_a is None and final.equipe_b is None
    bronze = _match(session, "bronze", "ignored", 2)
    assert bronze.description == "Bronze #2"


def _quarter_pairs(session: Session):
    rows = session.exec(
        select(BracketMatch).where(BracketMatch.phase == "quart").order_by(BracketMatch.match_number)
    ).all()
    return [(m.equipe_a, m.equipe_b) for m in rows]


def test_same_seed_same_draw(session: Session):
    teams = ["T1", "T2", "T3", "T4", "T5"]
    _teams(session, *teams)
    bracket_service.create_brackets(session, teams, seed=4)
    first = _quarter_pairs(session)

    bracket_service.create_brackets(session, teams, seed=4)
    assert _quarter_pairs(session) == first
    assert len(first) == 3


def test_bye_winner_moves_on_at_creation(session: Session):
    _teams(session, "T1", "T2", "T3")
    bracket_service.create_brackets(session, ["T1", "T2", "T3"], seed=0)

    bye = _match(session, "principal", "demi", 2)
    assert bye.has_bye is True
    assert bye.equipe_b is None
    assert bye.vainqueur == "A"

    final = _match(session, "principal", "finale", 1)
    assert final.equipe_b == bye.equipe_a


def test_bracket_input_validation(session: Session):
    _teams(session, "T1", "T2")
    with pytest.raises(InvalidArgument):
        bracket_service.create_brackets(session, ["T1"])
    with pytest.raises(InvalidArgument):
        bracket_service.create_brackets(session, ["T1", "T1"])
    with pytest.raises(InvalidArgument):
        bracket_service.get_match(session, "repechage", "finale", 1)


def test_consolation_final_feeds_bronze_slot_b(session: Session):
    _teams(session, "T1", "T2", "C1", "C2")
    bracket_service.create_brackets(session, ["T1", "T2"], consolante=["C1", "C2"], seed=1)

    final = _match(session, "consolante", "finale", 1)
    bracket_service.override_match(session, final, score_a=1, score_b=2, vainqueur="B")
    result = bracket_service.advance_winner(session, final)

    assert result["bronze"] == {"1": final.equipe_b, "2": final.equipe_a}
    assert _match(session, "bronze", "bronze", 1).equipe_b == final.equipe_b
    assert _match(session, "bronze", "bronze", 2).equipe_b == final.equipe_a


def test_advance_needs_a_winner(session: Session):
    _teams(session, "T1", "T2")
    bracket_service.create_brackets(session, ["T1", "T2"], seed=1)
    with pytest.raises(InvalidState):
        bracket_service.advance_winner(session, _match(session, "principal", "finale", 1))


def test_override_rejects_unknown_slot(session: Session):
    _teams(session, "T1", "T2")
    bracket_service.create_brackets(session, ["T1", "T2"], seed=1)
    with pytest.raises(InvalidArgument):
        bracket_service.override_match(session, _match(session, "principal", "finale", 1), vainqueur="rouge")


def test_semi_final_fought_on_a_mat(client: TestClient):
    """Assign a semi-final, win its only bout, then advance winner and loser."""
    for team_id in ("T1", "T2", "T3", "T4"):
        assert client.post("/api/teams", json={"id": team_id, "name": f"Club {team_id}"}).status_code == 201
        client.post("/api/athletes", json={"name": f"Athlete {team_id}", "sex": "F", "weight": "-57", "team_id": team_id})

    created = client.post("/api/brackets", json={"principal": ["T1", "T2", "T3", "T4"], "seed": 5})
    assert created.status_code == 201
    assert created.json()["start_phase_principal"] == "demi"

    mat = client.post("/api/mats", json={}).json()
    assert mat["name"] == "Tatami 1"

    semi = client.get("/api/brackets/principal/demi/1").json()
    assigned = client.post("/api/brackets/principal/demi/1/assign", json={"mat_id": mat["id"]})
    assert assigned.status_code == 200
    assert assigned.json()["combats_crees"] == 1
    bout_id = assigned.json()["bout_ids"][0]

    # Advancing before the match is decided is refused
    assert client.post("/api/brackets/principal/demi/1/advance").status_code == 409

    client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})
    scored = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "ippon"}).json()
    assert scored["bracket_matches_updated"] == [semi["id"]]

    decided = client.get("/api/brackets/principal/demi/1").json()
    assert decided["vainqueur"] == "A"
    assert decided["score_a"] == 1
    assert decided["score_b"] == 0

    advanced = client.post("/api/brackets/principal/demi/1/advance").json()
    assert advanced["vainqueur"] == semi["equipe_a"]
    assert advanced["next"] == {"phase": "finale", "match_number": 1, "slot": "A"}

    assert client.get("/api/brackets/principal/finale/1").json()["equipe_a"] == semi["equipe_a"]
    assert client.get("/api/brackets/bronze/bronze/1").json()["equipe_a"] == semi["equipe_b"]

    tree = client.get("/api/brackets").json()
    assert len(tree["principal"]["demi"]) == 2
    assert len(tree["bronze"]) == 2


def test_unknown_match_is_404(client: TestClient):
    response = client.get("/api/brackets/principal/quart/3")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_bracket_bouts_stay_out_of_pools(client: TestClient):
    for team_id in ("T1", "T2"):
        client.post("/api/teams", json={"id": team_id, "name": f"Club {team_id}"})
        client.post("/api/athletes", json={"name": f"Athlete {team_id}", "sex": "M", "weight": "-66", "team_id": team_id})
    pool = client.post("/api/pools", json={"count": 1, "seed": 2}).json()[0]
    client.post("/api/brackets", json={"principal": ["T1", "T2"], "seed": 2})
    mat = client.post("/api/mats", json={}).json()

    assigned = client.post("/api/brackets/principal/finale/1/assign", json={"mat_id": mat["id"]}).json()
    bout_id = assigned["bout_ids"][0]

    rencontre = client.get(f"/api/pools/{pool['id']}").json()["rencontres"][0]
    assert rencontre["bout_ids"] == []
    assert rencontre["etat"] == "prevue"

    client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})
    scored = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "ippon"}).json()
    assert scored["pools_updated"] == []
    assert len(scored["bracket_matches_updated"]) == 1
