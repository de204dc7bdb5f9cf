"""
Tests for the FastAPI server.

Covers puzzle creation, lookup and creator edits, attempt play through
place/remove/rotate, completion stamping, achievements and Cookie Trifecta
status.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotz import api_server
from dotz.api_server import GameStore, app


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 10, 18, 8, 30, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(monkeypatch, clock):
    monkeypatch.setattr(api_server, "store", GameStore(clock=clock))
    return TestClient(app)


def puzzle_payload(**overrides):
    payload = {
        "title": "Pair",
        "difficulty_level": "Medium",
        "grid_width": 3,
        "grid_height": 3,
        "board_data": {"red": {"color": "bg-red-200", "cells": [0, 1]}, "blue": {"color": "bg-blue-200", "cells": [3, 6]}},
        "dominoes_data": [{"id": "domino-0", "values": [3, 4]}, {"id": "domino-1", "values": [2, 2]}],
        "conditions_data": {"red": {"type": "sum", "value": 7}, "blue": {"type": "equality"}},
        "is_published": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def puzzle_id(client):
    response = client.post("/puzzles", json=puzzle_payload())
    assert response.status_code == 200
    return response.json()["id"]


def start(client, puzzle_id, user_id=1):
    response = client.post("/attempts", json={"puzzle_id": puzzle_id, "user_id": user_id})
    assert response.status_code == 200
    return response.json()["attempt"]["id"]


# ============================================================================
# Puzzles
# ============================================================================

class TestPuzzles:
    """Tests for puzzle endpoints."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "service": "dotz"}

    def test_create_and_get(self, client, puzzle_id):
        body = client.get(f"/puzzles/{puzzle_id}").json()
        assert body["title"] == "Pair"
        assert body["difficulty_level"] == "Medium"
        red = next(r for r in body["regions"] if r["id"] == "red")
        assert red["cells"] == [0, 1]
        assert red["condition_text"] == "Σ = 7"
        assert body["has_solution"] is False

    def test_accepts_json_string_blobs(self, client):
        payload = puzzle_payload(
            board_data='{"red": {"id": "red", "cells": ["cell-0", "cell-1"]}}',
            dominoes_data='[{"id": "domino-0", "values": [3, 4]}]',
            conditions_data='{"red": {"type": "sum", "value": "7"}}',
        )
        response = client.post("/puzzles", json=payload)
        assert response.status_code == 200
        assert response.json()["regions"][0]["cells"] == [0, 1]

    def test_grid_size_validated(self, client):
        assert client.post("/puzzles", json=puzzle_payload(grid_width=11)).status_code == 422

    def test_inconsistent_definition_rejected(self, client):
        board = {"red": {"cells": [0, 1]}, "blue": {"cells": [1, 2]}}
        response = client.post("/puzzles", json=puzzle_payload(
            board_data=board,
            conditions_data={"red": {"type": "equality"}, "blue": {"type": "equality"}},
        ))
        assert response.status_code == 422
        assert "belongs to both" in response.json()["detail"]

    def test_unknown_puzzle(self, client):
        assert client.get("/puzzles/42").status_code == 404

    def test_published_list(self, client, puzzle_id):
        client.post("/puzzles", json=puzzle_payload(is_published=False))
        assert [p["id"] for p in client.get("/puzzles").json()] == [puzzle_id]
        assert client.get("/puzzles", params={"difficulty": "Easy"}).json() == []

    def test_daily_puzzle(self, client, clock):
        client.post("/puzzles", json=puzzle_payload(is_daily_puzzle=True, daily_puzzle_date="2026-10-18"))
        assert client.get("/puzzles/daily").json()["daily_puzzle_date"] == "2026-10-18"
        assert client.get("/puzzles/daily", params={"day": "2026-10-19"}).status_code == 404

    def test_solve_stores_solution(self, client, puzzle_id):
        body = client.post(f"/puzzles/{puzzle_id}/solve").json()
        assert body["success"] and body["solved"]
        assert body["placements"]["domino-0"] == {"cell": 0, "orientation": "horizontal"}
        assert client.get(f"/puzzles/{puzzle_id}").json()["has_solution"] is True

    def test_solve_unsolvable(self, client):
        pid = client.post("/puzzles", json=puzzle_payload(conditions_data={
            "red": {"type": "sum", "value": 99}, "blue": {"type": "equality"},
        })).json()["id"]
        body = client.post(f"/puzzles/{pid}/solve").json()
        assert body["success"] is True
        assert body["solved"] is False


# ============================================================================
# Puzzle management
# ============================================================================

class TestPuzzleManagement:
    """Tests for creator edits, deletes and listings."""

    @pytest.fixture
    def owned_id(self, client):
        return client.post("/puzzles", json=puzzle_payload(creator_id=5, is_published=False)).json()["id"]

    def test_edit_metadata(self, client, owned_id):
        response = client.patch(f"/puzzles/{owned_id}", json={"creator_id": 5, "title": "Renamed", "is_published": True})
        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Renamed"
        assert body["is_published"] is True
        assert body["difficulty_level"] == "Medium"
        assert [p["id"] for p in client.get("/puzzles").json()] == [owned_id]

    def test_edit_definition_is_revalidated(self, client, owned_id):
        client.post(f"/puzzles/{owned_id}/solve")
        body = client.patch(f"/puzzles/{owned_id}", json={
            "creator_id": 5,
            "conditions_data": '{"red": {"type": "sum", "value": 8}, "blue": {"type": "equality"}}',
        }).json()
        red = next(r for r in body["regions"] if r["id"] == "red")
        assert red["condition_text"] == "Σ = 8"
        assert body["has_solution"] is False

        response = client.patch(f"/puzzles/{owned_id}", json={
            "creator_id": 5,
            "board_data": {"red": {"cells": ["cell-0", "cell-1"]}, "blue": {"cells": ["cell-1", "cell-2"]}},
        })
        assert response.status_code == 422
        assert "belongs to both" in response.json()["detail"]

    def test_edit_by_other_creator(self, client, owned_id):
        response = client.patch(f"/puzzles/{owned_id}", json={"creator_id": 6, "title": "Mine now"})
        assert response.status_code == 403
        assert client.get(f"/puzzles/{owned_id}").json()["title"] == "Pair"

    def test_edit_unknown_puzzle(self, client):
        assert client.patch("/puzzles/77", json={"creator_id": 5, "title": "x"}).status_code == 404

    def test_delete_by_creator(self, client, owned_id):
        assert client.delete(f"/puzzles/{owned_id}", params={"creator_id": 6}).json()["success"] is False
        assert client.delete(f"/puzzles/{owned_id}", params={"creator_id": 5}).json() == {"success": True, "error": None}
        assert client.get(f"/puzzles/{owned_id}").status_code == 404
        assert client.delete(f"/puzzles/{owned_id}", params={"creator_id": 5}).json()["success"] is False

    def test_delete_played_puzzle_refused(self, client, owned_id):
        start(client, owned_id, user_id=9)
        body = client.delete(f"/puzzles/{owned_id}", params={"creator_id": 5}).json()
        assert body["success"] is False
        assert "attempts" in body["error"]
        assert client.get(f"/puzzles/{owned_id}").status_code == 200

    def test_creator_listing(self, client, owned_id):
        other = client.post("/puzzles", json=puzzle_payload(creator_id=6)).json()["id"]
        newer = client.post("/puzzles", json=puzzle_payload(creator_id=5, is_published=True)).json()["id"]
        assert [p["id"] for p in client.get("/users/5/puzzles").json()] == [newer, owned_id]
        assert [p["id"] for p in client.get("/users/6/puzzles").json()] == [other]


# ============================================================================
# Attempts
# ============================================================================

class TestAttempts:
    """Tests for playing an attempt over HTTP."""

    def test_new_attempt(self, client, puzzle_id):
        body = client.post("/attempts", json={"puzzle_id": puzzle_id}).json()
        assert body["attempt"]["user_id"] is None
        assert body["attempt"]["phase"] == "not_started"
        assert body["status"] == {"filled_regions": [], "violated_regions": [], "complete": False}

    def test_attempt_for_unknown_puzzle(self, client):
        assert client.post("/attempts", json={"puzzle_id": 5}).status_code == 404

    def test_place_and_status(self, client, puzzle_id):
        attempt_id = start(client, puzzle_id)
        body = client.post(f"/attempts/{attempt_id}/place", json={
            "domino_id": "domino-0", "cell": 0, "orientation": "horizontal",
        }).json()
        assert body["success"] is True
        assert body["status"]["filled_regions"] == ["red"]
        assert body["attempt"]["phase"] == "in_progress"
        assert body["attempt"]["board"]["1"] == {"domino_id": "domino-0", "value": 4}

        stored = client.get(f"/attempts/{attempt_id}").json()
        assert stored["attempt"]["board"] == body["attempt"]["board"]

    def test_rejected_move(self, client, puzzle_id):
        attempt_id = start(client, puzzle_id)
        body = client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-0", "cell": 2}).json()
        assert body["success"] is False
        assert body["error"] == "out_of_bounds"
        assert body["attempt"]["board"] == {}

    def test_remove_and_rotate(self, client, puzzle_id):
        attempt_id = start(client, puzzle_id)
        client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-1", "cell": 3})
        body = client.post(f"/attempts/{attempt_id}/rotate", json={"domino_id": "domino-1"}).json()
        assert body["success"] is True
        assert set(body["attempt"]["board"]) == {"3", "6"}
        assert body["status"]["filled_regions"] == ["blue"]

        body = client.post(f"/attempts/{attempt_id}/remove", json={"domino_id": "domino-1"}).json()
        assert body["attempt"]["board"] == {}
        body = client.post(f"/attempts/{attempt_id}/remove", json={"domino_id": "domino-1"}).json()
        assert body["error"] == "not_placed"

    def test_unknown_attempt(self, client):
        assert client.post("/attempts/9/remove", json={"domino_id": "domino-0"}).status_code == 404
        assert client.get("/attempts/9").status_code == 404

    def test_completion_records_one_achievement(self, client, clock, puzzle_id):
        attempt_id = start(client, puzzle_id, user_id=7)
        clock.advance(20)
        client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-0", "cell": 0})
        clock.advance(25.5)
        body = client.post(f"/attempts/{attempt_id}/place", json={
            "domino_id": "domino-1", "cell": 3, "orientation": "vertical",
        }).json()

        assert body["status"]["complete"] is True
        assert body["attempt"]["is_completed"] is True
        assert body["attempt"]["completion_time"] == 45
        assert body["attempt"]["phase"] == "completed"
        assert body["achievement"]["is_cookie_trifecta"] is True
        assert body["achievement"]["difficulty_level"] == "Medium"
        assert body["achievement"]["attempt_id"] == attempt_id

        again = client.post(f"/attempts/{attempt_id}/remove", json={"domino_id": "domino-0"}).json()
        assert again["error"] == "already_completed"
        assert len(client.get("/users/7/achievements").json()) == 1

    def test_slow_completion(self, client, clock, puzzle_id):
        attempt_id = start(client, puzzle_id, user_id=7)
        client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-0", "cell": 0})
        clock.advance(61)
        body = client.post(f"/attempts/{attempt_id}/place", json={
            "domino_id": "domino-1", "cell": 3, "orientation": "vertical",
        }).json()
        assert body["attempt"]["completion_time"] == 61
        assert body["achievement"]["is_cookie_trifecta"] is False

    def test_guest_completion_has_no_achievement(self, client, puzzle_id):
        attempt_id = start(client, puzzle_id, user_id=None)
        client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-0", "cell": 0})
        body = client.post(f"/attempts/{attempt_id}/place", json={
            "domino_id": "domino-1", "cell": 3, "orientation": "vertical",
        }).json()
        assert body["attempt"]["is_completed"] is True
        assert body["achievement"] is None


# ============================================================================
# Users
# ============================================================================

class TestUsers:
    """Tests for per-user endpoints."""

    def test_user_attempts(self, client, puzzle_id):
        start(client, puzzle_id, user_id=3)
        start(client, puzzle_id, user_id=4)
        attempts = client.get("/users/3/attempts").json()
        assert [a["user_id"] for a in attempts] == [3]

    def test_cookie_trifecta_status(self, client, clock, puzzle_id):
        assert client.get("/users/7/cookie-trifecta").json() == {"easy": False, "medium": False, "hard": False}

        attempt_id = start(client, puzzle_id, user_id=7)
        client.post(f"/attempts/{attempt_id}/place", json={"domino_id": "domino-0", "cell": 0})
        client.post(f"/attempts/{attempt_id}/place", json={
            "domino_id": "domino-1", "cell": 3, "orientation": "vertical",
        })
        assert client.get("/users/7/cookie-trifecta").json() == {"easy": False, "medium": True, "hard": False}
        assert client.get("/users/7/achievements", params={"difficulty": "Easy"}).json() == []
