"""Tests for the QR token HTTP endpoints."""

from fastapi.testclient import TestClient

from tests.conftest import EVENT_ID, ManualClock, auth


def _create_guest_share(client: TestClient, **body: object) -> dict[str, object]:
    response = client.post("/qr/quick/guest", json={"title": "Beach day", **body})
    assert response.status_code == 201
    return response.json()["qrCode"]


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_guest_quick_share_uses_default_expiry(client: TestClient) -> None:
    qr_code = _create_guest_share(client)

    assert qr_code["type"] == "quick"
    assert qr_code["userId"] == "guest"
    assert qr_code["scanCount"] == 0
    assert qr_code["createdAt"] == "2026-05-01T12:00:00+00:00"
    assert qr_code["expiresAt"] == "2026-05-02T12:00:00+00:00"
    assert qr_code["url"] == f"https://barqpix.test/quick/{qr_code['quickId']}"


def test_quick_share_validation_errors(client: TestClient) -> None:
    missing_title = client.post("/qr/quick/guest", json={"expiresIn": 2})
    bad_duration = client.post(
        "/qr/quick/guest", json={"title": "Trip", "expiresIn": 0}
    )

    assert missing_title.status_code == 400
    assert missing_title.json()["code"] == "validation_error"
    assert bad_duration.status_code == 400


def test_quick_share_rejects_non_finite_expiry(client: TestClient) -> None:
    for literal in ("NaN", "Infinity"):
        response = client.post(
            "/qr/quick/guest",
            content=f'{{"title": "Trip", "expiresIn": {literal}}}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


def test_signed_in_quick_share_requires_token(client: TestClient) -> None:
    anonymous = client.post("/qr/quick", json={"title": "Trip"})
    rejected = client.post("/qr/quick", json={"title": "Trip"}, headers=auth("bad"))
    accepted = client.post(
        "/qr/quick", json={"title": "Trip", "expiresIn": 2}, headers=auth()
    )

    assert anonymous.status_code == 401
    assert rejected.status_code == 401
    assert accepted.status_code == 201
    assert accepted.json()["qrCode"]["userId"] == "owner-1"
    assert accepted.json()["qrCode"]["expiresAt"] == "2026-05-01T14:00:00+00:00"


def test_scan_counts_until_expiry(client: TestClient, clock: ManualClock) -> None:
    qr_code = _create_guest_share(client, expiresIn=1)

    first = client.post(f"/qr/{qr_code['quickId']}/scan")
    second = client.post(
        f"/qr/{qr_code['id']}/scan", json={"scannerId": "g1", "scannerName": "Lina"}
    )
    clock.advance(hours=1)
    expired = client.post(f"/qr/{qr_code['quickId']}/scan")

    assert first.json()["qrCode"]["scanCount"] == 1
    assert second.json()["qrCode"]["scanCount"] == 2
    assert expired.status_code == 410
    assert expired.json() == {"error": "This QR code has expired.", "code": "expired"}


def test_scan_unknown_reference(client: TestClient) -> None:
    response = client.post("/qr/not-a-token/scan")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_owner_endpoints(client: TestClient) -> None:
    created = client.post("/qr/quick", json={"title": "Trip"}, headers=auth()).json()
    token_id = created["qrCode"]["id"]
    client.post(f"/qr/{token_id}/scan", json={"scannerId": "g1"})

    listing = client.get("/qr/user", headers=auth())
    fetched = client.get(f"/qr/{token_id}", headers=auth())
    forbidden = client.get(f"/qr/{token_id}", headers=auth("token-other"))
    stats = client.get(f"/qr/{token_id}/stats", headers=auth())

    assert listing.json()["count"] == 1
    assert fetched.json()["qrCode"]["scanCount"] == 1
    assert forbidden.status_code == 403
    assert stats.json()["stats"]["totalScans"] == 1
    assert stats.json()["stats"]["uniqueScanners"] == 1


def test_delete_quick_token_closes_session(client: TestClient) -> None:
    created = client.post("/qr/quick", json={"title": "Trip"}, headers=auth()).json()
    qr_code = created["qrCode"]
    client.post(
        f"/photos/quick/{qr_code['quickId']}",
        files=[("photos", ("a.jpg", b"\xff\xd8a", "image/jpeg"))],
    )

    deleted = client.delete(f"/qr/{qr_code['id']}", headers=auth())
    gallery = client.get(f"/photos/quick/{qr_code['quickId']}")

    assert deleted.status_code == 200
    assert gallery.status_code == 404


def test_event_token_for_organizer(client: TestClient) -> None:
    first = client.get(f"/qr/event/{EVENT_ID}", headers=auth("token-organizer"))
    second = client.get(f"/qr/event/{EVENT_ID}", headers=auth("token-organizer"))
    forbidden = client.get(f"/qr/event/{EVENT_ID}", headers=auth("token-other"))
    missing = client.get("/qr/event/unknown", headers=auth("token-organizer"))
    scan = client.post(f"/qr/{EVENT_ID}/scan")

    assert first.json()["qrCode"]["id"] == second.json()["qrCode"]["id"]
    assert first.json()["qrCode"]["expiresAt"] is None
    assert forbidden.status_code == 403
    assert missing.status_code == 404
    assert scan.json()["qrCode"]["scanCount"] == 1


def test_cleanup_requires_admin_token(client: TestClient, clock: ManualClock) -> None:
    _create_guest_share(client, expiresIn=1)
    clock.advance(hours=2)

    unauthorized = client.post("/qr/cleanup/expired")
    response = client.post(
        "/qr/cleanup/expired", headers={"X-Admin-Token": "admin-token"}
    )

    assert unauthorized.status_code == 401
    assert response.status_code == 200
    assert response.json() == {
        "message": "Cleanup completed",
        "deletedCount": 1,
        "photosDeleted": 0,
        "failures": 0,
    }
