"""Bout runtime through the API: scoring cascade into pools and mats, clock, osaekomi, corrections."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from judo.models.bout import Bout
from judo.models.mat import Mat


def _team(client: TestClient, team_id: str, name: str):
    response = client.post("/api/teams", json={"id": team_id, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _athlete(client: TestClient, name: str, team_id: str, sex: str = "M", weight: str = "-73"):
    response = client.post("/api/athletes", json={"name": name, "sex": sex, "weight": weight, "team_id": team_id})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def two_teams(client: TestClient):
    """Two teams with one M/-73 athlete each, a single pool and one mat."""
    _team(client, "PSG", "Paris Judo")
    _team(client, "OL", "Lyon Judo")
    _athlete(client, "Martin", "PSG")
    _athlete(client, "Bernard", "OL")

    pools = client.post("/api/pools", json={"count": 1, "seed": 7})
    assert pools.status_code == 201, pools.text
    mat = client.post("/api/mats", json={"name": "Tatami 1"})
    assert mat.status_code == 201, mat.text
    return {"pool": pools.json()[0], "mat": mat.json()}


@pytest.fixture
def live_bout(client: TestClient, two_teams):
    """Generated PSG (rouge) vs OL (bleu) bout, queued on the mat and started."""
    generated = client.post("/api/bouts/generate", json={"equipe_a": "PSG", "equipe_b": "OL"})
    assert generated.status_code == 201, generated.text
    bouts = generated.json()
    assert len(bouts) == 1

    bout_id = bouts[0]["id"]
    assigned = client.post(f"/api/mats/{two_teams['mat']['id']}/assign", json={"bout_ids": [bout_id]})
    assert assigned.status_code == 200, assigned.text
    started = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})
    assert started.status_code == 200, started.text
    return {**two_teams, "bout_id": bout_id}


def test_double_wazari_updates_pool_standings(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    pool_id = live_bout["pool"]["id"]

    first = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "wazari"})
    assert first.status_code == 200
    assert first.json()["finished"] is False

    second = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "wazari"})
    assert second.status_code == 200
    body = second.json()
    assert body["finished"] is True
    assert body["bout"]["etat"] == "terminé"
    assert body["bout"]["raison_fin"] == "double_wazari"
    assert body["bout"]["vainqueur"] == "rouge"
    assert body["pools_updated"] == [pool_id]
    assert body["mats_updated"] == [live_bout["mat"]["id"]]

    pool = client.get(f"/api/pools/{pool_id}").json()
    rows = {row["equipe_id"]: row for row in pool["classement"]}
    assert rows["PSG"]["points"] == 1
    assert rows["PSG"]["victoires"] == 1
    assert rows["PSG"]["points_marques"] == 20
    assert rows["OL"]["points"] == 0
    assert rows["OL"]["defaites"] == 1
    assert pool["classement"][0]["equipe_id"] == "PSG"
    assert pool["rencontres"][0]["etat"] == "assignee"

    mat = client.get(f"/api/mats/{live_bout['mat']['id']}").json()
    assert mat["score_confrontation"] == {"rouge": 20, "bleu": 0}

    standings = client.get("/api/standings").json()
    assert [row["equipe_id"] for row in standings] == ["PSG", "OL"]
    assert standings[0]["rang"] == 1


def test_scoring_a_finished_bout_is_rejected(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/points", json={"side": "bleu", "type": "ippon"})

    response = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "yuko"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


def test_invalid_point_type(client: TestClient, live_bout):
    response = client.post(f"/api/bouts/{live_bout['bout_id']}/points", json={"side": "rouge", "type": "koka"})
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_argument"


def test_unknown_bout_is_404(client: TestClient):
    response = client.post("/api/bouts/999/points", json={"side": "rouge", "type": "yuko"})
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_osaekomi_flow(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]

    stop_without_hold = client.post(f"/api/bouts/{bout_id}/osaekomi/stop", json={"duration": 12})
    assert stop_without_hold.status_code == 409

    started = client.post(f"/api/bouts/{bout_id}/osaekomi/start", json={"side": "bleu"})
    assert started.status_code == 200
    assert started.json()["osaekomi_actif"] is True
    assert started.json()["osaekomi_cote"] == "bleu"

    stopped = client.post(f"/api/bouts/{bout_id}/osaekomi/stop", json={"duration": 12})
    assert stopped.status_code == 200
    body = stopped.json()
    assert body["points_awarded"] == ["yuko"]
    assert body["bout"]["bleu"]["yuko"] == 1
    assert body["bout"]["osaekomi_actif"] is False
    assert body["bout"]["osaekomi_cote"] is None

    client.post(f"/api/bouts/{bout_id}/osaekomi/start", json={"side": "rouge"})
    ippon = client.post(f"/api/bouts/{bout_id}/osaekomi/stop", json={"duration": 20}).json()
    assert ippon["finished"] is True
    assert ippon["bout"]["raison_fin"] == "osaekomi_ippon"
    assert ippon["bout"]["vainqueur"] == "rouge"


def test_hold_ends_with_the_bout(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/osaekomi/start", json={"side": "bleu"})

    ippon = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "ippon"}).json()
    assert ippon["finished"] is True
    assert ippon["bout"]["osaekomi_actif"] is False
    assert ippon["bout"]["osaekomi_cote"] is None

    for duration in (16, 20):
        stopped = client.post(f"/api/bouts/{bout_id}/osaekomi/stop", json={"duration": duration})
        assert stopped.status_code == 409
        assert stopped.json()["error"] == "invalid_state"

    bout = client.get(f"/api/bouts/{bout_id}").json()
    assert bout["etat"] == "terminé"
    assert bout["raison_fin"] == "ippon"
    assert bout["vainqueur"] == "rouge"
    assert bout["bleu"]["wazari"] == 0
    assert bout["bleu"]["ippon"] is False

    rows = {r["equipe_id"]: r for r in client.get(f"/api/pools/{live_bout['pool']['id']}").json()["classement"]}
    assert rows["PSG"]["victoires"] == 1
    assert rows["OL"]["victoires"] == 0


def test_timer_expiry_clears_running_hold(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/osaekomi/start", json={"side": "rouge"})

    expired = client.patch(f"/api/bouts/{bout_id}/timer", json={"timer": 0}).json()
    assert expired["finished"] is True
    assert expired["bout"]["osaekomi_actif"] is False
    assert client.post(f"/api/bouts/{bout_id}/osaekomi/stop", json={"duration": 20}).status_code == 409


def test_osaekomi_needs_live_bout(client: TestClient, two_teams):
    bout = client.post("/api/bouts/generate", json={"equipe_a": "PSG", "equipe_b": "OL"}).json()[0]
    response = client.post(f"/api/bouts/{bout['id']}/osaekomi/start", json={"side": "rouge"})
    assert response.status_code == 409


def test_correction_reopens_bout_and_standings_follow(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "ippon"})

    corrected = client.post(
        f"/api/bouts/{bout_id}/corrections",
        json={"side": "rouge", "operation": "convertir", "from": "ippon", "to": "wazari"},
    )
    assert corrected.status_code == 200
    bout = corrected.json()["bout"]
    assert bout["etat"] == "pause"
    assert bout["vainqueur"] is None
    assert bout["rouge"]["ippon"] is False
    assert bout["rouge"]["wazari"] == 1

    resumed = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})
    assert resumed.status_code == 200
    finished = client.post(f"/api/bouts/{bout_id}/points", json={"side": "bleu", "type": "ippon"}).json()
    assert finished["finished"] is True
    assert finished["bout"]["vainqueur"] == "bleu"

    rows = {r["equipe_id"]: r for r in client.get(f"/api/pools/{live_bout['pool']['id']}").json()["classement"]}
    assert rows["OL"]["victoires"] == 1
    assert rows["PSG"]["victoires"] == 0


def test_timer_expiry_finishes_live_bout(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/points", json={"side": "bleu", "type": "yuko"})

    ticking = client.patch(f"/api/bouts/{bout_id}/timer", json={"timer": 30}).json()
    assert ticking["finished"] is False
    assert ticking["bout"]["timer"] == 30

    expired = client.patch(f"/api/bouts/{bout_id}/timer", json={"timer": 0}).json()
    assert expired["finished"] is True
    assert expired["bout"]["raison_fin"] == "temps_ecoule"
    assert expired["bout"]["vainqueur"] == "bleu"


def test_state_transitions(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]

    back = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "prévu"})
    assert back.status_code == 409

    paused = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "pause"}).json()
    assert paused["bout"]["etat"] == "pause"

    golden = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "golden_score"}).json()
    assert golden["bout"]["etat"] == "golden_score"
    assert golden["bout"]["timer"] == 180

    ended = client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "yuko"}).json()
    assert ended["bout"]["raison_fin"] == "avantage_golden_score"
    assert ended["bout"]["vainqueur"] == "rouge"

    again = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "en cours"})
    assert again.status_code == 409


def test_manual_finish_is_a_decision(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/points", json={"side": "bleu", "type": "wazari"})
    body = client.patch(f"/api/bouts/{bout_id}/state", json={"etat": "terminé"}).json()
    assert body["finished"] is True
    assert body["bout"]["raison_fin"] == "decision"
    assert body["bout"]["vainqueur"] == "bleu"


def test_reset_restores_default_timer(client: TestClient, live_bout):
    bout_id = live_bout["bout_id"]
    client.post(f"/api/bouts/{bout_id}/points", json={"side": "rouge", "type": "ippon"})

    reset = client.post(f"/api/bouts/{bout_id}/reset").json()
    assert reset["etat"] == "prévu"
    assert reset["timer"] == 240
    assert reset["rouge"]["ippon"] is False
    assert reset["vainqueur"] is None

    rows = {r["equipe_id"]: r for r in client.get(f"/api/pools/{live_bout['pool']['id']}").json()["classement"]}
    assert rows["PSG"]["victoires"] == 0
    assert rows["PSG"]["confrontations"] == 0


def test_delete_bout_detaches_references(client: TestClient, live_bout, session: Session):
    bout_id = live_bout["bout_id"]
    pool_id = live_bout["pool"]["id"]

    client.post(f"/api/bouts/{bout_id}/points", json={"side": "bleu", "type": "ippon"})
    assert client.get(f"/api/pools/{pool_id}").json()["classement"][0]["equipe_id"] == "OL"

    response = client.delete(f"/api/bouts/{bout_id}")
    assert response.status_code == 200

    session.expire_all()
    assert session.get(Bout, bout_id) is None
    assert session.get(Mat, live_bout["mat"]["id"]).bout_ids == []
    pool = client.get(f"/api/pools/{pool_id}").json()
    assert pool["rencontres"][0]["bout_ids"] == []
    rows = {r["equipe_id"]: r for r in pool["classement"]}
    assert rows["OL"]["victoires"] == 0
    assert rows["OL"]["points"] == 0


def test_public_projection(client: TestClient, live_bout):
    public = client.get(f"/api/bouts/{live_bout['bout_id']}/public").json()
    assert public["rouge"]["name"] == "Martin"
    assert public["rouge"]["team_name"] == "Paris Judo"
    assert public["mat_name"] == "Tatami 1"
    assert set(public["bleu"]["scores"]) == {"ippon", "wazari", "yuko", "shido"}
