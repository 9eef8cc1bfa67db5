"""Tests for the HTTP interface."""

import inspect

import pytest
from fastapi.testclient import TestClient

from py_terragen.api.main import app, get_planet, get_planet_mesh, get_planet_plates, list_planets, registry

SMALL_PLANET = {
    "seed": "api_test",
    "level": 2,
    "distort_iterations": 2,
    "max_relax_iterations": 20,
    "plate_count": 6,
}


class TestAPI:
    """Test endpoints with background generation run in-process."""

    def setup_method(self):
        """Set up test client."""
        registry.clear()
        self.client = TestClient(app)

    def generate(self, **overrides):
        payload = dict(SMALL_PLANET, **overrides)
        response = self.client.post("/planets/generate", json=payload)
        assert response.status_code == 200
        return response.json()

    def test_root(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_generate_and_poll(self):
        job = self.generate()
        assert job["job_id"]

        # Background tasks finish before TestClient returns
        status = self.client.get(f"/jobs/{job['job_id']}").json()
        assert status["status"] == "completed"
        assert status["progress_percent"] == 100
        assert status["planet_id"]

    def test_planet_summary(self):
        job = self.generate(name="Testworld")
        planet_id = self.client.get(f"/jobs/{job['job_id']}").json()["planet_id"]

        summary = self.client.get(f"/planets/{planet_id}").json()
        assert summary["name"] == "Testworld"
        assert summary["seed"] == "api_test"
        assert summary["level"] == 2
        assert summary["tiles"] == 162
        assert summary["borders"] == 480
        assert summary["faces"] == 320
        assert 1 <= summary["plates"] <= 6

    def test_list_planets(self):
        self.generate()
        self.generate(seed="other")
        planets = self.client.get("/planets").json()
        assert [p["seed"] for p in planets] == ["api_test", "other"]

    def test_plates(self):
        job = self.generate()
        planet_id = self.client.get(f"/jobs/{job['job_id']}").json()["planet_id"]

        plates = self.client.get(f"/planets/{planet_id}/plates").json()
        assert sum(p["tile_count"] for p in plates) == 162
        assert [p["id"] for p in plates] == list(range(1, len(plates) + 1))
        for plate in plates:
            assert len(plate["axis_of_rotation"]) == 3
            assert 0.1 <= plate["angular_velocity"] < 0.4

    @pytest.mark.parametrize("kind,face_count", [("regular", 320), ("dual", 960), ("tiles", 960)])
    def test_mesh(self, kind, face_count):
        job = self.generate()
        planet_id = self.client.get(f"/jobs/{job['job_id']}").json()["planet_id"]

        response = self.client.get(f"/planets/{planet_id}/mesh", params={"kind": kind})
        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == kind
        assert len(data["faces"]) == face_count
        assert data["wireframe"] is None

    def test_mesh_wireframe(self):
        job = self.generate()
        planet_id = self.client.get(f"/jobs/{job['job_id']}").json()["planet_id"]

        data = self.client.get(
            f"/planets/{planet_id}/mesh", params={"kind": "tiles", "wireframe": True}
        ).json()
        assert len(data["wireframe"]) == 480

    def test_mesh_unknown_kind(self):
        job = self.generate()
        planet_id = self.client.get(f"/jobs/{job['job_id']}").json()["planet_id"]
        response = self.client.get(f"/planets/{planet_id}/mesh", params={"kind": "voxels"})
        assert response.status_code == 422

    def test_unknown_ids(self):
        assert self.client.get("/jobs/missing").status_code == 404
        assert self.client.get("/planets/missing").status_code == 404
        assert self.client.get("/planets/missing/plates").status_code == 404
        assert self.client.get("/planets/missing/mesh").status_code == 404

    def test_invalid_request(self):
        response = self.client.post("/planets/generate", json={"level": 99})
        assert response.status_code == 422
        response = self.client.post("/planets/generate", json={"plate_count": 0})
        assert response.status_code == 422

    def test_eviction(self, monkeypatch):
        monkeypatch.setattr(registry, "max_planets", 1)
        self.generate(seed="first")
        self.generate(seed="second")
        planets = self.client.get("/planets").json()
        assert [p["seed"] for p in planets] == ["second"]

    def test_planet_handlers_are_sync(self):
        """Summary and mesh handlers run in the threadpool, off the event loop."""
        for handler in (list_planets, get_planet, get_planet_plates, get_planet_mesh):
            assert not inspect.iscoroutinefunction(handler)
