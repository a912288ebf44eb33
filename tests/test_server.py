"""
HTTP API tests: run store endpoints and the live session.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import north_of
from trun.server import create_app

START = (51.5, -0.09)

RUN = {
    "path": [[51.5, -0.09], [51.5, -0.088], [51.5, -0.086]],
    "distance": 277.0,
    "claimedTiles": ["0:0", "1:0"],
    "duration": 60,
    "startTime": "2026-10-01T07:00:00+00:00",
    "endTime": "2026-10-01T07:01:00+00:00",
}


@pytest.fixture
def client(tmp_path):
    """Create FastAPI test client bound to a temporary run store."""
    app = create_app("test", db_path=str(tmp_path / "runs.sqlite"))
    with TestClient(app) as c:
        yield c


def sample(coord):
    return {"lat": coord[0], "lng": coord[1]}


class TestRunStore:

    def test_root_and_status(self, client):
        assert client.get("/").status_code == 200
        assert client.get("/api/status").json() == {"status": "ok"}

    def test_save_run(self, client):
        response = client.post("/run", json=RUN)
        assert response.status_code == 201
        data = response.json()
        assert data["id"].startswith("run_")
        assert data["claimedTiles"] == ["0:0", "1:0"]
        assert data["path"] == RUN["path"]
        assert data["startTime"] == RUN["startTime"]
        assert "createdAt" in data

    def test_save_run_rejects_short_path(self, client):
        response = client.post("/run", json={**RUN, "path": [[51.5, -0.09]]})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid run path. Must have at least 2 points."}

    def test_save_run_normalizes_fields(self, client):
        response = client.post("/run", json={**RUN, "distance": "far", "claimedTiles": None})
        assert response.status_code == 201
        assert response.json()["distance"] == 0
        assert response.json()["claimedTiles"] == []

    def test_list_get_delete(self, client):
        run_id = client.post("/run", json=RUN).json()["id"]
        assert [r["id"] for r in client.get("/runs").json()] == [run_id]
        assert client.get(f"/runs/{run_id}").json()["id"] == run_id

        response = client.delete(f"/runs/{run_id}")
        assert response.status_code == 200
        assert response.json()["message"] == "Run deleted"
        assert response.json()["run"]["id"] == run_id
        assert client.get("/runs").json() == []

    def test_missing_run(self, client):
        assert client.get("/runs/run_0_nothing").status_code == 404
        response = client.delete("/runs/run_0_nothing")
        assert response.status_code == 404
        assert response.json() == {"error": "Run not found"}

    def test_stats(self, client):
        client.post("/run", json={**RUN, "claimedTiles": ["0:0", "1:0"]})
        client.post("/run", json={**RUN, "claimedTiles": ["1:0", "2:0"]})
        assert client.get("/stats").json() == {
            "totalRuns": 2,
            "totalDistance": 554.0,
            "totalDuration": 120.0,
            "uniqueTilesClaimed": 3,
        }

    def test_run_tiles(self, client):
        run_id = client.post("/run", json=RUN).json()["id"]
        tiles = client.get(f"/runs/{run_id}/tiles").json()
        assert [t["key"] for t in tiles] == ["0:0", "1:0"]
        assert tiles[1]["bounds"] == [[0.0, 0.0002], [0.0002, 0.0004]]

    def test_tile_bounds(self, client):
        response = client.get("/tiles/-1:-1/bounds")
        assert response.status_code == 200
        assert response.json()["bounds"] == [[-0.0002, -0.0002], [0.0, 0.0]]
        assert client.get("/tiles/nope/bounds").status_code == 400


class TestLiveSession:

    def test_full_run(self, client):
        assert client.post("/session/start").json()["isTracking"] is True
        client.post("/session/sample", json=sample(START))
        client.post("/session/sample", json=sample(north_of(START, 1)))
        state = client.post("/session/sample", json=sample(north_of(START, 60))).json()
        assert len(state["path"]) == 2
        assert state["distance"] == pytest.approx(60, abs=0.01)
        assert state["position"] == list(north_of(START, 60))

        response = client.post("/session/save")
        assert response.status_code == 201
        assert len(response.json()["path"]) == 2
        after = client.get("/session").json()
        assert after["isTracking"] is False
        assert after["path"] == []
        assert after["startTime"] is None
        assert len(client.get("/runs").json()) == 1

    def test_start_twice_conflicts(self, client):
        client.post("/session/start")
        response = client.post("/session/start")
        assert response.status_code == 409
        assert "error" in response.json()

    def test_sample_when_idle_conflicts(self, client):
        assert client.post("/session/sample", json=sample(START)).status_code == 409

    def test_sample_out_of_range(self, client):
        client.post("/session/start")
        assert client.post("/session/sample", json={"lat": 95, "lng": 0}).status_code == 422

    def test_sensor_error_keeps_tracking(self, client):
        client.post("/session/start")
        state = client.post("/session/error", json={"message": "Timeout expired"}).json()
        assert state["isTracking"] is True
        assert state["error"] == "GPS error: Timeout expired"

    def test_save_short_session_rejected(self, client):
        client.post("/session/start")
        client.post("/session/sample", json=sample(START))
        response = client.post("/session/save")
        assert response.status_code == 400
        assert client.get("/runs").json() == []
        state = client.get("/session").json()
        assert state["isTracking"] is True
        assert len(state["path"]) == 1
        # the run can still be completed and saved afterwards
        client.post("/session/sample", json=sample(north_of(START, 30)))
        assert client.post("/session/save").status_code == 201

    def test_stop_keeps_and_reset_clears(self, client):
        client.post("/session/start")
        client.post("/session/sample", json=sample(START))
        client.post("/session/sample", json=sample(north_of(START, 20)))
        stopped = client.post("/session/stop").json()
        assert stopped["isTracking"] is False
        assert len(stopped["path"]) == 2
        # stopping again is harmless
        assert client.post("/session/stop").status_code == 200

        cleared = client.post("/session/reset").json()
        assert cleared["path"] == []
        assert cleared["distance"] == 0
        assert cleared["claimedTiles"] == []
        assert cleared["startTime"] is None
