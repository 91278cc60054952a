"""Tests for the event routes."""

import pytest
from fastapi.testclient import TestClient

from eventrelay.main import app
from eventrelay.models.event import EventEnvelope
from eventrelay.services.event_store import get_event_store

from fakes import FakeStore


@pytest.fixture
def fake_store():
    store = FakeStore()
    app.dependency_overrides[get_event_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    # No context manager: the lifespan (real database) is not started
    return TestClient(app)


def use_events(store, events, then="exhaust"):
    store._events = [EventEnvelope(id=i, event=e) for i, e in events]
    store._then = then


def test_stream_without_token_is_forbidden(client, fake_store):
    response = client.get("/api/events")

    assert response.status_code == 403
    assert response.text == "not authenticated"
    assert fake_store.resume_ids == []


def test_stream_with_wrong_token_is_forbidden(client, fake_store):
    response = client.get(
        "/api/events",
        headers={"Authorization": "Bearer not-the-token", "Last-Event-ID": "42"},
    )

    assert response.status_code == 403
    assert response.text == "not authenticated"
    assert fake_store.resume_ids == []


def test_stream_resumes_from_last_event_id(client, fake_store, auth_headers):
    use_events(fake_store, [("43", "ping")])

    response = client.get("/api/events", headers={**auth_headers, "last-event-id": "42"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.text == "event: event\ndata: ping\nid: 43\n\n"
    assert fake_store.resume_ids == ["42"]


def test_stream_passes_last_event_id_unmodified(client, fake_store, auth_headers):
    response = client.get(
        "/api/events", headers={**auth_headers, "Last-Event-ID": "opaque/Token=="}
    )

    assert response.status_code == 200
    assert fake_store.resume_ids == ["opaque/Token=="]


def test_stream_without_last_event_id_starts_from_beginning(client, fake_store, auth_headers):
    use_events(fake_store, [("1", "a"), ("2", "b\nc")])

    response = client.get("/api/events", headers=auth_headers)

    assert response.status_code == 200
    assert fake_store.resume_ids == [None]
    assert response.text == (
        "event: event\ndata: a\nid: 1\n\n"
        "event: event\ndata: b\ndata: c\nid: 2\n\n"
    )


def test_stream_accepts_token_cookie(client, fake_store):
    use_events(fake_store, [("1", "a")])
    client.cookies.set("access_token", "test-token")

    response = client.get("/api/events")

    assert response.status_code == 200
    assert response.text == "event: event\ndata: a\nid: 1\n\n"


def test_stream_ends_cleanly_on_event_source_failure(client, fake_store, auth_headers):
    use_events(fake_store, [("1", "a")], then="fail")

    response = client.get("/api/events", headers=auth_headers)

    assert response.status_code == 200
    assert response.text == "event: event\ndata: a\nid: 1\n\n"
    assert fake_store.cursors[0].closed


def test_stream_closes_cursor_when_exhausted(client, fake_store, auth_headers):
    use_events(fake_store, [("1", "a"), ("2", "b")])

    client.get("/api/events", headers=auth_headers)

    cursor = fake_store.cursors[0]
    assert cursor.closed
    assert cursor.pulls == 3


def test_stream_on_closed_store_is_unavailable(client, fake_store, auth_headers):
    fake_store.closed = True

    response = client.get("/api/events", headers=auth_headers)

    assert response.status_code == 503
    assert fake_store.resume_ids == []


def test_store_event_without_token_is_forbidden(client, fake_store):
    response = client.post("/api/events", content=b'{"kind":"created"}')

    assert response.status_code == 403
    assert response.text == "not authenticated"
    assert fake_store.stored == []


def test_store_event(client, fake_store, auth_headers):
    response = client.post("/api/events", content=b'{"kind":"created"}', headers=auth_headers)

    assert response.status_code == 201
    assert response.json() == {"id": "00000000000000000001"}
    assert fake_store.stored == ['{"kind":"created"}']


def test_store_event_rejects_empty_body(client, fake_store, auth_headers):
    response = client.post("/api/events", content=b"  ", headers=auth_headers)

    assert response.status_code == 400
    assert fake_store.stored == []


def test_health_is_public(client, fake_store):
    fake_store.stored.append("x")

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "events": 1, "streams": 0}


def test_store_event_rejects_non_utf8_body(client, fake_store, auth_headers):
    response = client.post("/api/events", content=b"\xff\xfe\x00", headers=auth_headers)

    assert response.status_code == 400
    assert fake_store.stored == []


def test_store_event_on_closed_store_is_unavailable(client, fake_store, auth_headers):
    fake_store.closed = True

    response = client.post("/api/events", content=b"late", headers=auth_headers)

    assert response.status_code == 503
    assert fake_store.stored == []


def test_store_event_closed_during_write_is_unavailable(client, fake_store, auth_headers):
    fake_store.close_before_write = True

    response = client.post("/api/events", content=b"late", headers=auth_headers)

    assert response.status_code == 503
    assert fake_store.stored == []


def test_health_reports_shutting_down(client, fake_store):
    fake_store.closed = True

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "shutting_down"
