"""HTTP-level tests, including the upload -> list -> rename -> share walkthrough."""

import json
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from filegate.main import create_app
from filegate.stores.objects import ObjectStore

from conftest import bucket_names, make_settings, object_body


def upload(client, user_id, name, data, content_type="application/pdf"):
    return client.post(
        "/upload",
        data={"userId": json.dumps({"userId": user_id})},
        files={"file": (name, data, content_type)},
    )


def test_end_to_end_flow(client, s3, metadata):
    response = upload(client, "Alice", "report.pdf", b"%PDF-1.7 q3")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "File report.pdf uploaded successfully."}
    assert "user-alice" in bucket_names(s3)
    token = metadata.get_credential("alice").token

    listing = client.get("/files/alice")
    assert listing.status_code == 200
    [entry] = listing.json()["files"]
    assert entry["name"] == "report.pdf"
    assert entry["blobUrl"].endswith("/user-alice/report.pdf" + token)
    assert entry["contentType"] == "application/pdf"
    assert entry["sizeInBytes"] == len(b"%PDF-1.7 q3")

    renamed = client.put(
        "/renameFile",
        json={"userId": "alice", "oldFileName": "report.pdf", "newFileName": "summary.pdf"},
    )
    assert renamed.status_code == 200
    assert [f["name"] for f in client.get("/files/alice").json()["files"]] == ["summary.pdf"]

    summary_url = client.get("/files/alice").json()["files"][0]["blobUrl"]
    shared = client.post(
        "/shareOperation",
        json={
            "userId": "alice",
            "blobURL": summary_url,
            "shareName": "q3-summary",
            "operation": "create",
            "uuid": "0f8c-q3",
        },
    )
    assert shared.status_code == 200
    body = shared.json()
    assert body["success"] is True
    assert body["shareUrl"].endswith("/shares/q3-summary.pdf")
    assert object_body(s3, "shares", "q3-summary.pdf") == b"%PDF-1.7 q3"

    [record] = metadata.list_shares("alice")
    assert record.source_etag
    assert record.source_etag == body["sourceEtag"]

    shares = client.get("/shares/Alice").json()["shares"]
    assert shares[0]["uuid"] == "0f8c-q3"
    assert shares[0]["sourceEtag"] == record.source_etag


def test_upload_validation(client, s3):
    assert client.post("/upload", files={"file": ("a.txt", b"a", "text/plain")}).status_code == 400

    bad_json = client.post("/upload", data={"userId": "{not json"}, files={"file": ("a.txt", b"a")})
    assert bad_json.status_code == 400
    assert bad_json.json()["message"].startswith("Invalid userId format")

    no_id = client.post("/upload", data={"userId": json.dumps({})}, files={"file": ("a.txt", b"a")})
    assert no_id.status_code == 400

    no_file = client.post("/upload", data={"userId": json.dumps({"userId": "alice"})})
    assert no_file.status_code == 400
    assert no_file.json()["message"] == "No file was uploaded."
    assert bucket_names(s3) == set()


def test_list_for_unknown_user_is_empty(client):
    response = client.get("/files/nobody")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "No files found for this user.", "files": []}


def test_get_file(client):
    upload(client, "alice", "report.pdf", b"%PDF")

    response = client.get("/getFile", params={"userId": "Alice", "fileName": "report.pdf"})
    assert response.status_code == 200
    info = response.json()["file"]
    assert info["name"] == "report.pdf"
    assert info["md5Hash"]
    assert "?" not in info["blobUrl"]

    assert client.get("/getFile", params={"userId": "alice"}).status_code == 400
    assert client.get("/getFile", params={"userId": "alice", "fileName": "nope"}).status_code == 404
    assert client.get("/getFile", params={"userId": "nobody", "fileName": "x"}).status_code == 404


def test_delete(client):
    upload(client, "alice", "report.pdf", b"%PDF")
    body = {"userId": "alice", "blobName": "report.pdf"}

    first = client.request("DELETE", "/deleteFile", json=body)
    second = client.request("DELETE", "/deleteFile", json=body)

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert second.status_code == 404
    assert second.json()["success"] is False
    assert client.request("DELETE", "/deleteFile", json={"userId": "alice"}).status_code == 400


def test_rename_errors(client):
    missing = client.put("/renameFile", json={"userId": "alice", "oldFileName": "a"})
    assert missing.status_code == 400

    no_tenant = client.put("/renameFile", json={"userId": "nobody", "oldFileName": "a", "newFileName": "b"})
    assert no_tenant.status_code == 404

    upload(client, "alice", "report.pdf", b"%PDF")
    no_source = client.put("/renameFile", json={"userId": "alice", "oldFileName": "a", "newFileName": "b"})
    assert no_source.status_code == 404
    assert no_source.json()["errorKind"] == "not_found"


@pytest.mark.parametrize(
    "payload",
    [
        {"operation": "delete"},
        {"uuid": None},
        {"shareName": ""},
    ],
)
def test_share_rejects_bad_requests(client, payload):
    body = {
        "userId": "alice",
        "blobURL": "https://s3.amazonaws.com/user-alice/report.pdf",
        "shareName": "q3",
        "operation": "create",
        "uuid": "u-1",
    }
    body.update(payload)

    response = client.post("/shareOperation", json=body)

    assert response.status_code == 400
    assert response.json()["errorKind"] == "validation"


def test_share_missing_source(client):
    upload(client, "alice", "report.pdf", b"%PDF")
    response = client.post(
        "/shareOperation",
        json={
            "userId": "alice",
            "blobURL": "https://s3.amazonaws.com/user-alice/ghost.pdf",
            "shareName": "q3",
            "operation": "edit",
            "uuid": "u-1",
        },
    )
    assert response.status_code == 404


def test_malformed_json_is_a_bad_request(client):
    response = client.put("/renameFile", content=b"{oops", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_credentialed_download(client):
    upload(client, "alice", "report.pdf", b"%PDF body")
    url = client.get("/files/alice").json()["files"][0]["blobUrl"]
    parts = urlsplit(url)
    path = parts.path.lstrip("/")  # "user-alice/report.pdf"

    ok = client.get(f"/blob/{path}?{parts.query}")
    assert ok.status_code == 200
    assert ok.content == b"%PDF body"
    assert ok.headers["content-type"] == "application/pdf"
    assert ok.headers["content-disposition"] == "inline; filename=\"report.pdf\"; filename*=UTF-8''report.pdf"

    assert client.get(f"/blob/{path}").status_code == 403
    assert client.get(f"/blob/user-bob/report.pdf?{parts.query}").status_code == 403


def test_share_url_is_readable_through_the_gateway(s3, metadata):
    settings = make_settings(blob_base_url="http://testserver/blob")
    app = create_app(settings, objects=ObjectStore(s3, settings), metadata=metadata)

    with TestClient(app) as gateway:
        upload(gateway, "alice", "report.pdf", b"%PDF shared body")
        blob_url = gateway.get("/files/alice").json()["files"][0]["blobUrl"]
        shared = gateway.post(
            "/shareOperation",
            json={"userId": "alice", "blobURL": blob_url, "shareName": "q3", "operation": "create", "uuid": "u-1"},
        )
        share_url = shared.json()["shareUrl"]
        assert share_url == "http://testserver/blob/shares/q3.pdf"

        response = gateway.get(urlsplit(share_url).path)

    assert response.status_code == 200
    assert response.content == b"%PDF shared body"
    assert response.headers["content-disposition"].startswith('inline; filename="q3.pdf"')
