"""Tests for the video and change endpoints."""

import asyncio

import pytest
from fastapi.testclient import TestClient

OWNER = {"X-User-Id": "owner-1"}
PROPOSER = {"X-User-Id": "proposer-1"}


@pytest.fixture
def video(review_service):
    return asyncio.run(review_service.upload_video(b"RAW", "beach day", user_id="owner-1"))


@pytest.fixture
def edit_url(blob_store) -> str:
    return blob_store.put("edits/api-edit.mp4", b"EDITED")


def _propose(client: TestClient, video_id: str, **body) -> dict:
    payload = {"description": "make it pop", **body}
    response = client.post(f"/api/v1/videos/{video_id}/changes", json=payload, headers=PROPOSER)
    assert response.status_code == 201
    return response.json()


def test_list_videos(test_client: TestClient, video) -> None:
    response = test_client.get("/api/v1/videos")

    assert response.status_code == 200
    data = response.json()
    assert [v["id"] for v in data["videos"]] == [video.id]
    assert data["has_more"] is False
    assert data["cursor"] is None


def test_get_video(test_client: TestClient, video) -> None:
    response = test_client.get(f"/api/v1/videos/{video.id}")

    assert response.status_code == 200
    assert response.json()["caption"] == "beach day"


def test_get_missing_video(test_client: TestClient) -> None:
    response = test_client.get("/api/v1/videos/missing")

    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_propose_requires_user(test_client: TestClient, video) -> None:
    response = test_client.post(
        f"/api/v1/videos/{video.id}/changes", json={"description": "anonymous"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationRequired"


def test_propose_rejects_relative_edit_url(test_client: TestClient, video) -> None:
    response = test_client.post(
        f"/api/v1/videos/{video.id}/changes",
        json={"description": "x", "edit_url": "edits/clip.mp4"},
        headers=PROPOSER,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidReference"


def test_propose_and_list(test_client: TestClient, video, edit_url) -> None:
    """Test proposed changes are listed newest first."""
    first = _propose(test_client, video.id, description="first")
    second = _propose(
        test_client,
        video.id,
        description="second",
        edit_url=edit_url,
        diff_metadata={"adjustments": {"contrast": 1.1}},
    )

    assert second["status"] == "open"
    assert second["diff_metadata"]["adjustments"] == {"contrast": 1.1}

    response = test_client.get(f"/api/v1/videos/{video.id}/changes")

    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [second["id"], first["id"]]


def test_accept_flow(test_client: TestClient, video, edit_url) -> None:
    """Test an owner accept promotes the edit and a repeat replays it."""
    change = _propose(test_client, video.id, edit_url=edit_url)

    forbidden = test_client.post(f"/api/v1/changes/{change['id']}/accept", headers=PROPOSER)
    assert forbidden.status_code == 403

    response = test_client.post(f"/api/v1/changes/{change['id']}/accept", headers=OWNER)
    assert response.status_code == 200
    data = response.json()
    assert data["change"]["status"] == "accepted"
    assert data["change"]["promotion"]["state"] == "done"
    assert data["promoted_video_id"] not in (None, video.id)
    assert data["old_asset_retired"] is True
    assert data["replayed"] is False

    feed = test_client.get("/api/v1/videos").json()
    assert [v["id"] for v in feed["videos"]] == [data["promoted_video_id"]]
    assert feed["videos"][0]["previous_version_id"] == video.id

    again = test_client.post(f"/api/v1/changes/{change['id']}/accept", headers=OWNER)
    assert again.status_code == 200
    assert again.json()["replayed"] is True
    assert again.json()["promoted_video_id"] == data["promoted_video_id"]

    conflict = test_client.post(f"/api/v1/changes/{change['id']}/reject", headers=OWNER)
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "InvalidTransition"


def test_accept_with_unresolvable_url(test_client: TestClient, video, edit_url, blob_store) -> None:
    """Test an exhausted URL budget maps to 504 and leaves the change inconsistent."""
    change = _propose(test_client, video.id, edit_url=edit_url)
    blob_store.visibility_lag = None

    response = test_client.post(f"/api/v1/changes/{change['id']}/accept", headers=OWNER)

    assert response.status_code == 504
    assert response.json()["error"] == "PermanentIO"

    listed = test_client.get(f"/api/v1/videos/{video.id}/changes").json()
    assert listed[0]["status"] == "accepted"
    assert listed[0]["promotion"]["state"] == "inconsistent"
    assert listed[0]["promotion"]["stage"] == "resolving_url"


def test_reject_flow(test_client: TestClient, video, edit_url, blob_store) -> None:
    change = _propose(test_client, video.id, edit_url=edit_url)

    response = test_client.post(f"/api/v1/changes/{change['id']}/reject", headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["change"]["status"] == "rejected"
    assert data["edit_asset_deleted"] is True
    assert "edits/api-edit.mp4" not in blob_store.objects

    again = test_client.post(f"/api/v1/changes/{change['id']}/reject", headers=OWNER)
    assert again.status_code == 409


def test_accept_missing_change(test_client: TestClient) -> None:
    response = test_client.post("/api/v1/changes/missing/accept", headers=OWNER)

    assert response.status_code == 404
