"""Mat queue: pointer bounds, assignment, release, confrontation score and history."""
import pytest
from fastapi.testclient import TestClient

from judo.errors import OutOfRange
from judo.services.mat_sequencer import step_pointer


@pytest.mark.parametrize("index,count,delta,expected", [(0, 3, 1, 1), (1, 3, 1, 2), (2, 3, -1, 1), (1, 2, -1, 0)])
def test_step_pointer(index, count, delta, expected):
    assert step_pointer(index, count, delta) == expected


@pytest.mark.parametrize("index,count,delta", [(0, 3, -1), (2, 3, 1), (0, 0, 1), (0, 1, 1)])
def test_step_pointer_out_of_range(index, count, delta):
    with pytest.raises(OutOfRange):
        step_pointer(index, count, delta)


@pytest.fixture
def queued_mat(client: TestClient):
    """A mat with three PSG vs OL bouts (three shared categories) queued on it."""
    for team_id, name in (("PSG", "Paris Judo"), ("OL", "Lyon Judo")):
        client.post("/api/teams", json={"id": team_id, "name": name})
        for sex, weight in (("M", "-66"), ("M", "-90"), ("F", "-52")):
            client.post(
                "/api/athletes",
                json={"name": f"{team_id} {sex}{weight}", "sex": sex, "weight": weight, "team_id": team_id},
            )
    bouts = client.post("/api/bouts/generate", json={"equipe_a": "PSG", "equipe_b": "OL"}).json()
    assert len(bouts) == 3

    mat = client.post("/api/mats", json={"name": "Tatami central"}).json()
    response = client.post(f"/api/mats/{mat['id']}/assign", json={"bout_ids": [b["id"] for b in bouts]})
    assert response.status_code == 200
    assert response.json()["assigned_count"] == 3
    return mat["id"], [b["id"] for b in bouts]


def test_assign_marks_mat_busy_and_points_at_first_bout(client: TestClient, queued_mat):
    mat_id, bout_ids = queued_mat
    mat = client.get(f"/api/mats/{mat_id}").json()
    assert mat["etat"] == "occupé"
    assert mat["bout_ids"] == bout_ids
    assert mat["index_combat_actuel"] == 0
    assert mat["combat_actuel"]["id"] == bout_ids[0]
    assert mat["progression"] == {"actuel": 1, "total": 3}
    assert mat["historique"][-1]["action"] == "assigner_combats"

    bout = client.get(f"/api/bouts/{bout_ids[0]}").json()
    assert bout["mat_id"] == mat_id
    assert bout["mat_name"] == "Tatami central"


def test_pointer_moves_and_stops_at_both_ends(client: TestClient, queued_mat):
    mat_id, bout_ids = queued_mat

    refused = client.post(f"/api/mats/{mat_id}/previous")
    assert refused.status_code == 409
    assert refused.json()["error"] == "out_of_range"

    for expected in (1, 2):
        moved = client.post(f"/api/mats/{mat_id}/next").json()
        assert moved["mat"]["index_combat_actuel"] == expected
        assert moved["combat_actuel"]["id"] == bout_ids[expected]

    assert client.post(f"/api/mats/{mat_id}/next").status_code == 409
    back = client.post(f"/api/mats/{mat_id}/previous").json()
    assert back["mat"]["index_combat_actuel"] == 1

    history = client.get(f"/api/mats/{mat_id}/history").json()
    actions = [entry["action"] for entry in history["historique"]]
    assert actions == ["assigner_combats", "combat_suivant", "combat_suivant", "combat_precedent"]
    assert [row["actuel"] for row in history["bouts"]] == [False, True, False]


def test_second_assignment_appends_and_resets_pointer(client: TestClient, queued_mat):
    mat_id, bout_ids = queued_mat
    client.post(f"/api/mats/{mat_id}/next")

    extra = client.post("/api/bouts/generate", json={"equipe_a": "OL", "equipe_b": "PSG"}).json()
    client.post(f"/api/mats/{mat_id}/assign", json={"bout_ids": [extra[0]["id"]]})

    mat = client.get(f"/api/mats/{mat_id}").json()
    assert mat["bout_ids"] == bout_ids + [extra[0]["id"]]
    assert mat["index_combat_actuel"] == 0


def test_assign_validation(client: TestClient, queued_mat):
    mat_id, _ = queued_mat
    missing = client.post(f"/api/mats/{mat_id}/assign", json={"bout_ids": [404]})
    assert missing.status_code == 404
    assert missing.json()["details"] == {"missing": [404]}

    empty = client.post(f"/api/mats/{mat_id}/assign", json={"bout_ids": []})
    assert empty.status_code == 422

    unknown_mat = client.post("/api/mats/99/assign", json={"bout_ids": [1]})
    assert unknown_mat.status_code == 404


def test_confrontation_score_sums_finished_bouts(client: TestClient, queued_mat):
    mat_id, bout_ids = queued_mat
    first, second, third = bout_ids
    for bout_id in bout_ids:
        client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})

    client.post(f"/api/bouts/{first}/points", json={"side": "rouge", "type": "ippon"})
    client.post(f"/api/bouts/{second}/points", json={"side": "bleu", "type": "wazari"})
    client.post(f"/api/bouts/{second}/points", json={"side": "rouge", "type": "yuko"})
    client.patch(f"/api/bouts/{second}/state", json={"etat": "terminé"})
    # Third bout still live: its yuko is not counted
    client.post(f"/api/bouts/{third}/points", json={"side": "bleu", "type": "yuko"})

    assert client.get(f"/api/mats/{mat_id}").json()["score_confrontation"] == {"rouge": 101, "bleu": 10}
    recomputed = client.post(f"/api/mats/{mat_id}/confrontation-score").json()
    assert recomputed == {"rouge": 101, "bleu": 10}


def test_release_and_state(client: TestClient, queued_mat):
    mat_id, _ = queued_mat

    paused = client.patch(f"/api/mats/{mat_id}/state", json={"etat": "pause"})
    assert paused.json()["etat"] == "pause"
    assert client.patch(f"/api/mats/{mat_id}/state", json={"etat": "fermé"}).status_code == 422
    assert client.get(f"/api/mats/{mat_id}/availability").json()["disponible"] is False

    released = client.post(f"/api/mats/{mat_id}/release").json()
    assert released["etat"] == "libre"
    assert released["bout_ids"] == []
    assert released["score_confrontation"] == {"rouge": 0, "bleu": 0}
    assert client.get(f"/api/mats/{mat_id}/current").json() is None
    assert client.get(f"/api/mats/{mat_id}/availability").json()["disponible"] is True


def test_live_confrontations(client: TestClient, queued_mat):
    mat_id, bout_ids = queued_mat
    live = client.get("/api/pools/confrontations/live").json()
    assert live == [
        {
            "mat_id": mat_id,
            "mat_name": "Tatami central",
            "bout_id": bout_ids[0],
            "equipe_rouge": "PSG",
            "equipe_bleu": "OL",
            "equipe_rouge_name": "Paris Judo",
            "equipe_bleu_name": "Lyon Judo",
            "score_confrontation": {"rouge": 0, "bleu": 0},
        }
    ]


def test_mat_limit(client: TestClient):
    for _ in range(10):
        assert client.post("/api/mats", json={}).status_code == 201
    response = client.post("/api/mats", json={})
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"
