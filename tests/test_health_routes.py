from unittest import mock

from buzzsmile.api import routes_health


def test_health_reports_database_state(client):
    with mock.patch.object(routes_health.database, "ping", mock.AsyncMock(return_value=True)):
        body = client.get("/api/health/").json()
    assert body["status"] == "healthy"
    assert body["services"]["database"] == "connected"

    with mock.patch.object(routes_health.database, "ping", mock.AsyncMock(return_value=False)):
        body = client.get("/api/health/").json()
    assert body["status"] == "unhealthy"


def test_liveness(client):
    assert client.get("/api/health/live").json()["status"] == "alive"


def test_readiness_is_503_without_database(client):
    with mock.patch.object(routes_health.database, "ping", mock.AsyncMock(return_value=False)):
        response = client.get("/api/health/ready")
    assert response.status_code == 503

    with mock.patch.object(routes_health.database, "ping", mock.AsyncMock(return_value=True)):
        assert client.get("/api/health/ready").status_code == 200


def test_ffmpeg_check(client):
    with mock.patch.object(routes_health.media, "ffmpeg_available", return_value=False):
        assert client.get("/api/health/ffmpeg").json()["ffmpeg"] is False


def test_unknown_route_uses_message_shape(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"message": "Not Found"}
