"""Integration tests for FastAPI endpoints (contract tests)."""

import dataclasses

import pytest
from httpx import AsyncClient, ASGITransport

from app.core.security import create_access_token
from app.main import app
from app.pipeline.service import ConversionService


@pytest.fixture
async def client(service):
    app.state.service = service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    del app.state.service


def _auth(user_id="user-1"):
    return {"Authorization": f"Bearer {create_access_token(user_id, f'{user_id}@example.com')}"}


async def _upload(client, data, mime="image/jpeg", name="photo.jpg", user_id="user-1"):
    return await client.post(
        "/v1/pdf/convert",
        files={"file": (name, data, mime)},
        headers=_auth(user_id),
    )


@pytest.mark.asyncio
class TestHealthEndpoint:
    async def test_health_returns_ok(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"


@pytest.mark.asyncio
class TestAuth:
    async def test_missing_token(self, client):
        resp = await client.get("/v1/pdf/conversions")
        assert resp.status_code == 401
        assert resp.json()["detail"]["error_code"] == "UNAUTHORIZED"

    async def test_bad_token(self, client):
        resp = await client.get("/v1/pdf/conversions", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_query_token_accepted(self, client):
        token = create_access_token("user-1")
        resp = await client.get(f"/v1/pdf/conversions?token={token}")
        assert resp.status_code == 200


@pytest.mark.asyncio
class TestConvertEndpoint:
    async def test_convert_ok(self, client, make_image):
        resp = await _upload(client, make_image(800, 600))
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "File converted to PDF successfully"
        conv = data["conversion"]
        assert conv["original_file"] == "photo.jpg"
        assert conv["file_type"] == "image/jpeg"
        assert conv["method"] == "server"
        assert conv["download_url"] == f"/v1/pdf/{conv['id']}"
        assert "output_path" not in conv
        assert [t["step"] for t in data["timings"]][-1] == "persist"

    async def test_unsupported_type(self, client):
        resp = await _upload(client, b"%PDF-1.7 not an image", mime="application/pdf", name="doc.pdf")
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error_code"] == "UNSUPPORTED_INPUT_TYPE"
        assert "image/jpeg" in detail["detail"]["supported_types"]

    async def test_corrupt_image(self, client, noisy_jpeg):
        resp = await _upload(client, noisy_jpeg[:200])
        assert resp.status_code == 422
        assert resp.json()["detail"]["error_code"] == "CORRUPT_INPUT"

    async def test_too_large(self, client, service, make_image):
        small = dataclasses.replace(service.config, max_upload_mb=0.0001)
        app.state.service = ConversionService(service.store, service.blobs, small)
        resp = await _upload(client, make_image(400, 400))
        assert resp.status_code == 413
        assert resp.json()["detail"]["error_code"] == "UPLOAD_TOO_LARGE"

    async def test_upload_read_is_bounded(self, client, service, noisy_jpeg, monkeypatch):
        from starlette.datastructures import UploadFile

        small = dataclasses.replace(service.config, max_upload_mb=0.001)
        app.state.service = ConversionService(service.store, service.blobs, small)
        limit_bytes = int(0.001 * 1024 * 1024)

        sizes = []
        original_read = UploadFile.read

        async def _read(self, size=-1):
            sizes.append(size)
            return await original_read(self, size)

        monkeypatch.setattr(UploadFile, "read", _read)
        resp = await _upload(client, noisy_jpeg, name="big.jpg")
        assert resp.status_code == 413
        assert sizes == [limit_bytes + 1]


@pytest.mark.asyncio
class TestDownloadAndDelete:
    async def test_list_newest_first(self, client, make_image):
        first = (await _upload(client, make_image(100, 100), name="one.jpg")).json()["conversion"]
        second = (await _upload(client, make_image(100, 100), name="two.jpg")).json()["conversion"]
        await _upload(client, make_image(100, 100), name="theirs.jpg", user_id="user-2")

        resp = await client.get("/v1/pdf/conversions", headers=_auth())
        ids = [c["id"] for c in resp.json()["conversions"]]
        assert ids == [second["id"], first["id"]]

    async def test_download_once(self, client, make_image):
        conv = (await _upload(client, make_image(1024, 768), name="Quittung.jpg")).json()["conversion"]

        resp = await client.get(conv["download_url"], headers=_auth())
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.headers["cache-control"] == "no-store"
        assert 'filename="Quittung.pdf"' in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF-")
        assert int(resp.headers["content-length"]) == len(resp.content)

        again = await client.get(conv["download_url"], headers=_auth())
        assert again.status_code == 404
        assert again.json()["detail"]["error_code"] == "NOT_FOUND"

        listed = await client.get("/v1/pdf/conversions", headers=_auth())
        assert listed.json()["conversions"] == []

    async def test_other_user_forbidden(self, client, make_image):
        conv = (await _upload(client, make_image(100, 100))).json()["conversion"]

        resp = await client.get(conv["download_url"], headers=_auth("user-2"))
        assert resp.status_code == 403
        assert resp.json()["detail"]["error_code"] == "FORBIDDEN"

        resp = await client.delete(conv["download_url"], headers=_auth("user-2"))
        assert resp.status_code == 403

        resp = await client.get(conv["download_url"], headers=_auth())
        assert resp.status_code == 200

    async def test_delete_idempotent(self, client, make_image):
        conv = (await _upload(client, make_image(100, 100))).json()["conversion"]

        resp = await client.delete(conv["download_url"], headers=_auth())
        assert resp.status_code == 200
        assert resp.json()["message"] == "Conversion deleted successfully"
        assert resp.json()["state"] == "DELETED"

        resp = await client.delete(conv["download_url"], headers=_auth())
        assert resp.status_code == 200
        assert resp.json()["message"] == "Conversion already deleted or not found"

        resp = await client.get(conv["download_url"], headers=_auth())
        assert resp.status_code == 404
