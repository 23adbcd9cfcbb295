import pytest

from functions.oracle import (
    CATEGORIES,
    ORACLE_ANIMATIONS,
    ORACLE_RESPONSES,
    ORACLE_SOUNDS,
    generate_oracle_response,
    resolve_category,
)


def test_every_category_has_four_answers_and_metadata():
    assert set(CATEGORIES) == {"quantum", "network", "metaphysical", "systems"}
    for category in CATEGORIES:
        assert len(ORACLE_RESPONSES[category]) == 4
        assert set(ORACLE_ANIMATIONS[category]) == {"speed", "style", "glow_color"}
        assert ORACLE_SOUNDS[category]


def test_random_resolves_once():
    picks = iter(["systems", ORACLE_RESPONSES["systems"][2]])
    response = generate_oracle_response("random", choice=lambda options: next(picks))

    assert response["category"] == "systems"
    assert response["answer"] == ORACLE_RESPONSES["systems"][2]
    assert response["animation"] == ORACLE_ANIMATIONS["systems"]
    assert response["sound"] == "mechanical"


def test_unknown_category_falls_back_to_quantum():
    assert resolve_category("astrology") == "quantum"
    assert resolve_category("network") == "network"


@pytest.mark.parametrize("category", ["quantum", "network", "metaphysical", "systems"])
def test_generate_endpoint(api, category):
    response = api.client.post("/api/oracle/generate", json={"question": "Who am I?", "category": category})

    assert response.status_code == 200
    body = response.json()
    assert body["question"] == "Who am I?"
    assert body["category"] == category
    assert body["answer"] in ORACLE_RESPONSES[category]
    assert body["animation"] == ORACLE_ANIMATIONS[category]
    assert body["sound"] == ORACLE_SOUNDS[category]
    assert body["timestamp"]


def test_generate_random_reports_concrete_category(api):
    body = api.client.post("/api/oracle/generate", json={"question": "Why?"}).json()

    assert body["category"] in CATEGORIES
    assert body["answer"] in ORACLE_RESPONSES[body["category"]]
    assert body["animation"] == ORACLE_ANIMATIONS[body["category"]]


def test_generate_validation(api):
    assert api.client.post("/api/oracle/generate", json={"question": ""}).status_code == 400
    assert api.client.post("/api/oracle/generate", json={"question": "x" * 501}).status_code == 400
    assert api.client.post("/api/oracle/generate", json={"question": "Why?", "category": "tarot"}).status_code == 400


def test_random_endpoint(api):
    body = api.client.get("/api/oracle/random").json()

    assert body["question"] is None
    assert body["answer"] in ORACLE_RESPONSES[body["category"]]


def test_stats_count_logged_requests(api):
    api.client.post("/api/oracle/generate", json={"question": "One", "category": "network"})
    api.client.post("/api/oracle/generate", json={"question": "Two", "category": "network"})
    api.client.post("/api/oracle/generate", json={"question": "Three", "category": "systems"})
    api.client.get("/api/oracle/random")

    stats = api.client.get("/api/oracle/stats").json()
    assert stats == {"total_requests": 3, "categories": {"network": 2, "systems": 1}}
