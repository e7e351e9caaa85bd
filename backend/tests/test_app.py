from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_root_and_health():
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/health/db").json() == {"status": "ok", "db": "ok"}


def test_worker_health_skipped_without_queue():
    assert client.get("/health/worker").json() == {"status": "skipped", "async_enabled": False}


def test_openapi_exposes_black_routes():
    paths = client.get("/openapi.json").json()["paths"]

    assert set(paths["/api/me/exams"]) == {"get", "post"}
    assert "delete" in paths["/api/me/exams/{exam_id}"]
    assert "post" in paths["/api/me/exams/{exam_id}/grade"]
    assert set(paths["/api/me/grades"]) == {"get", "post"}
    assert "get" in paths["/api/me/subscription"]
    assert {"get", "post"} <= set(paths["/api/cron/readiness"])


def test_malformed_json_is_bad_request():
    response = client.post(
        "/api/me/exams",
        content="{not json",
        headers={"Authorization": "Bearer test-token-uid-a", "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "bad_request"}


def test_operation_ids_are_unique():
    paths = client.get("/openapi.json").json()["paths"]
    operation_ids = [op["operationId"] for item in paths.values() for op in item.values()]

    assert len(operation_ids) == len(set(operation_ids))
    assert paths["/api/cron/readiness"]["get"]["operationId"] == "run_readiness_get"
    assert paths["/api/cron/readiness"]["post"]["operationId"] == "run_readiness_post"
