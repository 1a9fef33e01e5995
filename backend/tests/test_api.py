"""
HTTP API tests

Exercises the assembled app: uploads, serving, deletion, cleanup,
scraping, the healthcheck and rate limiting.

Run:
    pytest backend/tests/test_api.py -v
"""

import os
import time

from fastapi.testclient import TestClient

from conftest import make_data_url, make_image_bytes, open_png
from core.config import RateLimitRule

PHOTO_URL = "https://cdn.example.com/p/red.png"
PAGE_URL = "https://shop.example.com/gallery"


def _png_route(size=(400, 200)):
    return (200, make_image_bytes(size), {"content-type": "image/png"})


# ============================================
# 1. Data URL uploads and serving
# ============================================

class TestDataUrlUpload:
    """测试：dataUrl 上传与读取"""

    def test_save_and_serve(self, make_app, upload_dir):
        body = make_image_bytes((30, 30))

        with TestClient(make_app()) as client:
            response = client.post("/api/images", json={"dataUrl": make_data_url(body)})
            payload = response.json()
            served = client.get(payload["apiUrl"])
            static = client.get(payload["url"])

        assert response.status_code == 200
        assert payload["success"] is True
        assert payload["message"] == "Image saved successfully"
        assert payload["url"].startswith("/uploads/")
        assert payload["url"].endswith(".png")
        name = payload["url"].rsplit("/", 1)[-1]
        assert len(name) == len("0" * 32 + ".png")
        assert (upload_dir / name).read_bytes() == body

        assert served.status_code == 200
        assert served.content == body
        assert served.headers["content-type"] == "image/png"
        assert served.headers["cache-control"] == "public, max-age=86400"
        assert static.content == body

    def test_missing_data_url(self, make_app):
        with TestClient(make_app()) as client:
            response = client.post("/api/images", json={"other": 1})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "No data URL provided"}

    def test_malformed_data_url(self, make_app):
        with TestClient(make_app()) as client:
            response = client.post("/api/images", json={"dataUrl": "data:image/png,notbase64"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid data URL format"

    def test_unsupported_content_type(self, make_app):
        with TestClient(make_app()) as client:
            response = client.post("/api/images", content=b"hello", headers={"content-type": "text/plain"})

        assert response.status_code == 400
        assert response.json()["message"] == "Unsupported content type"

    def test_non_image_mime_types_are_rejected(self, make_app, upload_dir):
        html = make_data_url(b"<script>alert(document.domain)</script>", mime="text/html")
        svg = make_data_url(b"<svg xmlns='http://www.w3.org/2000/svg'/>", mime="image/svg+xml")

        with TestClient(make_app()) as client:
            responses = [client.post("/api/images", json={"dataUrl": url}) for url in (html, svg)]

        assert [r.status_code for r in responses] == [400, 400]
        assert all(r.json()["message"] == "Invalid data URL format" for r in responses)
        assert [p.name for p in upload_dir.iterdir()] == [".gitkeep"]

    def test_undecodable_image_payload_is_rejected(self, make_app, upload_dir):
        with TestClient(make_app()) as client:
            response = client.post("/api/images", json={"dataUrl": make_data_url(b"not really a png")})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid data URL format"
        assert [p.name for p in upload_dir.iterdir()] == [".gitkeep"]

    def test_jpeg_is_stored_with_jpg_suffix(self, make_app):
        body = make_image_bytes((20, 20), fmt="JPEG")

        with TestClient(make_app()) as client:
            payload = client.post("/api/images", json={"dataUrl": make_data_url(body, "image/jpeg")}).json()
            served = client.get(payload["apiUrl"])

        assert payload["url"].endswith(".jpg")
        assert served.headers["content-type"] == "image/jpeg"

    def test_oversized_payload(self, make_app):
        body = make_image_bytes((30, 30))

        with TestClient(make_app(max_upload_size_mb=0)) as client:
            response = client.post("/api/images", json={"dataUrl": make_data_url(body)})

        assert response.status_code == 400
        assert response.json()["message"] == "Image too large"


# ============================================
# 2. Form uploads (URLs, files, scraped pages)
# ============================================

class TestFormUpload:
    """测试：表单批量处理"""

    def test_image_urls_are_normalized_and_persisted(self, make_app, upload_dir):
        missing = "https://cdn.example.com/p/missing.png"
        app = make_app({PHOTO_URL: _png_route()})

        with TestClient(app) as client:
            response = client.post("/api/images", data={"imageUrls[]": [PHOTO_URL, missing, PHOTO_URL]})
            payload = response.json()
            first = client.get(payload["images"][0]["apiUrl"])

        assert response.status_code == 200
        assert payload["processed"] == 2
        assert payload["failed"] == 0
        assert [image["originalUrl"] for image in payload["images"]] == [PHOTO_URL, missing]
        assert [image["placeholder"] for image in payload["images"]] == [False, True]
        assert open_png(first.content).size == (1500, 1500)
        assert len([p for p in upload_dir.iterdir() if p.suffix == ".png"]) == 2

    def test_malformed_url_only_fails_its_own_entry(self, make_app):
        bad = "http://[::1/a.jpg"
        app = make_app({PHOTO_URL: _png_route()})

        with TestClient(app) as client:
            response = client.post("/api/images", data={"imageUrls[]": [bad, PHOTO_URL]})

        assert response.status_code == 200
        payload = response.json()
        assert [image["originalUrl"] for image in payload["images"]] == [bad, PHOTO_URL]
        assert [image["placeholder"] for image in payload["images"]] == [True, False]
        assert payload["processed"] == 2

    def test_uploaded_files(self, make_app):
        files = [
            ("files", ("photo.jpg", make_image_bytes((200, 400), fmt="JPEG"), "image/jpeg")),
            ("files", ("broken.png", b"nope", "image/png")),
        ]

        with TestClient(make_app()) as client:
            response = client.post("/api/images", files=files)

        payload = response.json()
        assert payload["processed"] == 2
        assert [image["originalName"] for image in payload["images"]] == ["photo.jpg", "broken.png"]
        assert [image["placeholder"] for image in payload["images"]] == [False, True]

    def test_web_url_is_scraped(self, make_app):
        html = b'<img src="/p/red.png"><img src="/logo.svg">'
        app = make_app({
            PAGE_URL: (200, html, {"content-type": "text/html"}),
            "https://shop.example.com/p/red.png": _png_route(),
        })

        with TestClient(app) as client:
            response = client.post("/api/images", data={"webUrl": PAGE_URL})

        payload = response.json()
        assert payload["success"] is True
        assert payload["processed"] == 1
        assert payload["images"][0]["originalUrl"] == "https://shop.example.com/p/red.png"

    def test_web_url_without_images(self, make_app):
        app = make_app({PAGE_URL: (200, b"<p>nothing here</p>", {"content-type": "text/html"})})

        with TestClient(app) as client:
            response = client.post("/api/images", data={"webUrl": PAGE_URL})

        payload = response.json()
        assert payload["success"] is False
        assert payload["failed"] == 1
        assert payload["images"][0]["message"] == "No images found on the page"

    def test_batch_is_capped(self, make_app):
        urls = [f"https://cdn.example.com/p/{i}.png" for i in range(5)]

        with TestClient(make_app(max_batch_images=3)) as client:
            response = client.post("/api/images", data={"imageUrls": urls})

        assert len(response.json()["images"]) == 3

    def test_empty_form(self, make_app):
        with TestClient(make_app()) as client:
            response = client.post("/api/images", data={"imageUrls": " "})

        assert response.status_code == 400
        assert response.json()["message"] == "No images provided"


# ============================================
# 3. Serving and deleting
# ============================================

class TestServeAndDelete:
    """测试：读取与删除"""

    def test_serve_requires_filename(self, make_app):
        with TestClient(make_app()) as client:
            response = client.get("/api/serve-image")

        assert response.status_code == 400
        assert response.json()["message"] == "No filename provided"

    def test_serve_unknown_file(self, make_app):
        with TestClient(make_app()) as client:
            response = client.get("/api/serve-image", params={"file": "nope.png"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "File not found"}

    def test_serve_rejects_traversal_and_keep_file(self, make_app):
        with TestClient(make_app()) as client:
            traversal = client.get("/api/serve-image", params={"file": "../secret.png"})
            keep = client.get("/api/serve-image", params={"file": ".gitkeep"})

        assert traversal.status_code == 400
        assert keep.status_code == 400

    def test_delete_requires_key(self, make_app, upload_dir):
        (upload_dir / "a.png").write_bytes(b"x")

        with TestClient(make_app()) as client:
            denied = client.delete("/api/images/a.png", params={"key": "wrong"})
            deleted = client.delete("/api/images/a.png", params={"key": "test-key"})
            again = client.delete("/api/images/a.png", params={"key": "test-key"})

        assert denied.status_code == 401
        assert deleted.json()["success"] is True
        assert again.json()["success"] is False
        assert not (upload_dir / "a.png").exists()


# ============================================
# 4. Cleanup
# ============================================

class TestCleanup:
    """测试：手动清理"""

    def test_requires_key(self, make_app):
        with TestClient(make_app()) as client:
            missing = client.get("/api/cleanup")
            wrong = client.get("/api/cleanup", params={"key": "nope"})

        assert missing.status_code == 401
        assert wrong.json() == {"success": False, "message": "Unauthorized"}

    def test_non_ascii_key_is_unauthorized(self, make_app):
        with TestClient(make_app()) as client:
            cleanup = client.get("/api/cleanup", params={"key": "clé"})
            delete = client.delete("/api/images/a.png", params={"key": "clé"})

        assert cleanup.status_code == 401
        assert delete.status_code == 401

    def test_invalid_max_age(self, make_app):
        with TestClient(make_app()) as client:
            response = client.get("/api/cleanup", params={"key": "test-key", "maxAge": "soon"})

        assert response.status_code == 400

    def test_deletes_old_files(self, make_app, upload_dir):
        old = upload_dir / "old.png"
        fresh = upload_dir / "fresh.png"
        old.write_bytes(b"x")
        fresh.write_bytes(b"x")
        # Older than maxAge, younger than the startup sweep's 60 minutes
        forty_five_minutes_ago = time.time() - 45 * 60
        os.utime(old, (forty_five_minutes_ago, forty_five_minutes_ago))

        with TestClient(make_app()) as client:
            response = client.get("/api/cleanup", params={"key": "test-key", "maxAge": "30"})

        payload = response.json()
        assert payload["success"] is True
        assert payload["deleted"] == 1
        assert payload["errors"] == 0
        assert not old.exists()
        assert fresh.exists()
        assert (upload_dir / ".gitkeep").exists()


# ============================================
# 5. Scrape route
# ============================================

class TestScrapeRoute:

    def test_lists_images_without_probing(self, make_app):
        app = make_app({PAGE_URL: (200, b'<img src="/a.jpg"><img data-src="/b.png">', {})})

        with TestClient(app) as client:
            response = client.get("/api/scrape", params={"url": PAGE_URL})

        payload = response.json()
        assert payload["success"] is True
        assert payload["urls"] == ["https://shop.example.com/a.jpg", "https://shop.example.com/b.png"]
        assert payload["images"][0] == {
            "url": "https://shop.example.com/a.jpg",
            "filename": "a.jpg",
            "width": None,
            "height": None,
            "sizeClass": "unknown",
        }

    def test_probe_reports_size_class(self, make_app):
        app = make_app({
            PAGE_URL: (200, b'<img src="/big.png"><img src="/small.png"><img src="/gone.png">', {}),
            "https://shop.example.com/big.png": _png_route((700, 700)),
            "https://shop.example.com/small.png": _png_route((100, 100)),
        })

        with TestClient(app) as client:
            response = client.get("/api/scrape", params={"url": PAGE_URL, "probe": "true"})

        images = response.json()["images"]
        assert [image["sizeClass"] for image in images] == ["large", "small", "unknown"]
        assert (images[0]["width"], images[0]["height"]) == (700, 700)

    def test_requires_url(self, make_app):
        with TestClient(make_app()) as client:
            response = client.get("/api/scrape")

        assert response.status_code == 400


# ============================================
# 6. Healthcheck and rate limiting
# ============================================

class TestHealthAndLimits:
    """测试：健康检查与限流"""

    def test_healthcheck(self, make_app):
        with TestClient(make_app()) as client:
            response = client.get("/api/healthcheck")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "timestamp" in response.json()

    def test_healthcheck_bypasses_global_limiter(self, make_app):
        app = make_app(rate_limits={"global": RateLimitRule(1, 60_000, "global")})

        with TestClient(app) as client:
            statuses = [client.get("/api/healthcheck").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_cleanup_limit_rejects_sixth_request(self, make_app):
        with TestClient(make_app()) as client:
            statuses = [client.get("/api/cleanup").status_code for _ in range(5)]
            rejected = client.get("/api/cleanup")

        assert statuses == [401] * 5
        assert rejected.status_code == 429
        assert rejected.headers["x-ratelimit-limit"] == "5"
        assert rejected.headers["x-ratelimit-remaining"] == "0"
        assert int(rejected.headers["retry-after"]) > 0
        body = rejected.json()
        assert body["success"] is False
        assert body["error"] == "Too many cleanup requests. Please try again later."
        assert body["limit"] == 5
        assert body["remaining"] == 0
        assert body["retryAfter"] > 0

    def test_global_limiter_applies_to_api_routes(self, make_app):
        app = make_app(rate_limits={"global": RateLimitRule(2, 60_000, "Too many requests to the API.")})

        with TestClient(app) as client:
            statuses = [
                client.get("/api/serve-image", params={"file": "x.png"}).status_code
                for _ in range(3)
            ]

        assert statuses == [404, 404, 429]

    def test_clients_are_limited_separately(self, make_app):
        app = make_app(rate_limits={"healthcheck": RateLimitRule(1, 60_000, "slow down")})

        with TestClient(app) as client:
            first = client.get("/api/healthcheck", headers={"X-Forwarded-For": "198.51.100.1"})
            second = client.get("/api/healthcheck", headers={"X-Forwarded-For": "198.51.100.1"})
            other = client.get("/api/healthcheck", headers={"X-Forwarded-For": "198.51.100.2"})

        assert [first.status_code, second.status_code, other.status_code] == [200, 429, 200]
