"""Health endpoint, fallback error envelopes and CORS headers."""


def test_health_is_public(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "OK"
    assert resp.json["version"] == "1.0.0"
    assert resp.json["timestamp"].endswith("Z")


def test_unknown_route(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json == {"success": False, "message": "Route not found"}


def test_wrong_method(client):
    resp = client.post("/api/health")
    assert resp.status_code == 405
    assert resp.json["success"] is False


def test_cors_allowed_origin(client):
    resp = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert resp.headers["Access-Control-Allow-Credentials"] == "true"


def test_cors_unknown_origin(client):
    resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers
