"""Tournament configuration: defaults, JSON overrides and consistency checks."""
import json

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from judo.config import TournamentConfig, load_config, merge_deep


def test_merge_deep_keeps_untouched_keys():
    base = {"combat": {"osaekomi": {"yuko": 10, "wazari": 15}, "duree_par_defaut": 240}, "tags": ["a"]}
    merged = merge_deep(base, {"combat": {"osaekomi": {"yuko": 5}}, "tags": ["b", "c"]})

    assert merged == {"combat": {"osaekomi": {"yuko": 5, "wazari": 15}, "duree_par_defaut": 240}, "tags": ["b", "c"]}
    assert base["combat"]["osaekomi"]["yuko"] == 10


def test_defaults(monkeypatch):
    monkeypatch.delenv("JUDO_CONFIG_PATH", raising=False)
    config = load_config()
    assert config.combat.duree_par_defaut == 240
    assert config.combat.osaekomi.ippon == 20
    assert config.combat.points.wazari == 10
    assert config.poules.points_victoire == 1
    assert config.tatamis.nombre_max == 10
    assert "-73" in config.combattants.categories_for("M")
    assert config.combattants.categories_for("X") == []


def test_file_overrides_are_merged(tmp_path):
    path = tmp_path / "tournoi.json"
    path.write_text(
        json.dumps({"name": "Open de Lyon", "combat": {"osaekomi": {"yuko": 5, "wazari": 10}}, "poules": {"points_victoire": 3}}),
        encoding="utf-8",
    )
    config = load_config(str(path))

    assert config.name == "Open de Lyon"
    assert config.combat.osaekomi.yuko == 5
    assert config.combat.osaekomi.wazari == 10
    assert config.combat.osaekomi.ippon == 20
    assert config.poules.points_victoire == 3
    assert config.poules.points_defaite == 0


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.json"))
    assert config == TournamentConfig()


def test_environment_variable_is_used(tmp_path, monkeypatch):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"tatamis": {"nombre_max": 4}}), encoding="utf-8")
    monkeypatch.setenv("JUDO_CONFIG_PATH", str(path))
    assert load_config().tatamis.nombre_max == 4


@pytest.mark.parametrize(
    "overrides",
    [
        {"combat": {"osaekomi": {"yuko": 16}}},
        {"combat": {"duree_par_defaut": 30}},
        {"tatamis": {"nombre_max": 0}},
        {"poules": {"min_equipes_par_poule": 1}},
    ],
)
def test_inconsistent_values_are_rejected(tmp_path, overrides):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(overrides), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(str(path))


def test_config_endpoint(client: TestClient):
    body = client.get("/api/config").json()
    assert body["combat"]["duree_golden_score"] == 180
    assert body["combat"]["enable_golden_score"] is True
    assert body["combattants"]["max_combattants_par_equipe"] == 20


def test_health(client: TestClient):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["app_name"] == "Judo Tournament API"
