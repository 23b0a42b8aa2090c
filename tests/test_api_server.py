import base64
import threading
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

import api_server


@pytest.fixture
def client():
    api_server.app.config["TESTING"] = True
    api_server.sessions.clear()
    with api_server.app.test_client() as client:
        yield client
    api_server.sessions.clear()


def png_upload(pixels):
    buffer = BytesIO()
    PILImage.fromarray(pixels).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


def decode_data_url(url):
    data = base64.b64decode(url.split(",", 1)[1])
    return np.asarray(PILImage.open(BytesIO(data)))


def load(client, pixels):
    resp = client.post("/api/load-image",
                       data={"image": (png_upload(pixels), "shot.png")},
                       content_type="multipart/form-data")
    assert resp.status_code == 200
    return resp.get_json()["session_id"]


def test_load_then_transform(client):
    pixels = np.array([[[255, 0, 0, 255], [0, 255, 0, 128]]], dtype=np.uint8)
    session_id = load(client, pixels)

    resp = client.post("/api/transform", json={"session_id": session_id, "transform": "grayscale"})
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["width"] == 2 and body["height"] == 1
    result = decode_data_url(body["image"])
    assert result.tolist() == [[[76, 76, 76, 255], [150, 150, 150, 128]]]


def test_binary_with_threshold(client):
    session_id = load(client, np.array([[[255, 0, 0], [0, 255, 0]]], dtype=np.uint8))
    resp = client.post("/api/transform",
                       json={"session_id": session_id, "transform": "binary", "threshold": 128})
    result = decode_data_url(resp.get_json()["image"])
    assert result[0, :, 0].tolist() == [0, 255]


def test_lab_reports_colour_space(client):
    session_id = load(client, np.zeros((2, 2, 3), dtype=np.uint8))
    body = client.post("/api/transform", json={"session_id": session_id, "transform": "lab"}).get_json()
    assert body["color_space"] == "lab"


def test_bad_threshold_is_400(client):
    session_id = load(client, np.zeros((1, 1, 3), dtype=np.uint8))
    resp = client.post("/api/transform",
                       json={"session_id": session_id, "transform": "binary", "threshold": 999})
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_unknown_session_is_400(client):
    resp = client.post("/api/transform", json={"session_id": "nope", "transform": "lab"})
    assert resp.status_code == 400


def test_session_without_image_is_409(client):
    session = api_server.get_or_create_session("empty")
    resp = client.post("/api/transform", json={"session_id": session.session_id, "transform": "lab"})
    assert resp.status_code == 409


def test_upload_without_file(client):
    assert client.post("/api/load-image", data={}).status_code == 400


def test_undecodable_upload(client):
    resp = client.post("/api/load-image",
                       data={"image": (BytesIO(b"garbage"), "x.png")},
                       content_type="multipart/form-data")
    assert resp.status_code == 400


def test_transforms_health_and_clear(client):
    assert "extract_a" in client.get("/api/transforms").get_json()["transforms"]
    session_id = load(client, np.zeros((1, 1, 3), dtype=np.uint8))
    assert client.get("/api/health").get_json()["active_sessions"] == 1
    assert client.post("/api/clear-session", json={"session_id": session_id}).status_code == 200
    assert client.post("/api/clear-session", json={"session_id": session_id}).status_code == 404


def test_concurrent_creation_yields_one_session(client):
    barrier = threading.Barrier(8)
    created = []

    def worker():
        barrier.wait()
        created.append(api_server.get_or_create_session("shared"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(s) for s in created}) == 1
    assert api_server.sessions["shared"] is created[0]


def test_transform_after_clear_is_400(client):
    session_id = load(client, np.zeros((1, 1, 3), dtype=np.uint8))
    api_server.remove_session(session_id)
    resp = client.post("/api/transform", json={"session_id": session_id, "transform": "lab"})
    assert resp.status_code == 400
    assert api_server.get_session(session_id) is None
