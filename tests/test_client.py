import pytest
import requests

from pixcache import ImageCache, RemoteTransport, Scope, derive_key, is_remote_locator

from conftest import payload_for, urls

URL = "https://img.example.com/dog.png"


def test_fetch_one_miss_then_hit(cache, transport):
    assert cache.fetch_one(URL) == payload_for(URL)
    assert cache.fetch_one(URL) == payload_for(URL)
    assert transport.call_count == 1
    assert cache.stats["cache_hits"] == 1
    assert cache.stats["hit_rate"] == 50.0


def test_fetch_one_without_anything(cache, transport):
    assert cache.fetch_one() is None
    assert transport.call_count == 0


def test_submit_one_returns_future(cache):
    assert cache.submit_one(URL).result(timeout=5) == payload_for(URL)


def test_save_locate_delete_round_trip(cache, tmp_path):
    assert cache.save(b"\x89PNG-bytes", "x", Scope.SECONDARY)

    path = cache.locate(custom_key="x", scope=Scope.SECONDARY)
    assert path == tmp_path / "documents" / "x"
    assert path.read_bytes() == b"\x89PNG-bytes"
    assert cache.fetch_one(custom_key="x", scope=Scope.SECONDARY) == b"\x89PNG-bytes"

    assert cache.delete_one(custom_key="x", scope=Scope.SECONDARY)
    assert not cache.locate(custom_key="x", scope=Scope.SECONDARY).exists()
    assert not cache.delete_one(custom_key="x", scope=Scope.SECONDARY)


def test_save_rejects_unusable_key(cache):
    assert not cache.save(b"data", "")
    assert not cache.save(b"data", "../outside")


def test_save_reports_io_failure(tmp_path, transport):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    with ImageCache(blocker / "caches", tmp_path / "documents", transport=transport) as cache:
        assert not cache.save(b"data", "x")
        # the fetched bytes still reach the caller when caching them fails
        assert cache.fetch_one(URL) == payload_for(URL)


def test_locate_by_identifier(cache, tmp_path):
    assert cache.locate(URL) == tmp_path / "caches" / derive_key(URL)
    assert cache.locate() is None


def test_locate_legacy_scheme(tmp_path, transport):
    with ImageCache(tmp_path / "c", tmp_path / "d", key_scheme="base64", transport=transport) as cache:
        assert cache.locate(URL).name == derive_key(URL, scheme="base64")


def test_delete_many_in_background(cache):
    identifiers = urls(5)
    for identifier in identifiers:
        cache.fetch_one(identifier)
    removed = cache.delete_many(identifiers + [None]).result(timeout=5)
    assert removed == 5
    assert not any(cache.locate(identifier).exists() for identifier in identifiers)


def test_fetch_image_and_save_image(cache):
    Image = pytest.importorskip("PIL.Image")
    img = Image.new("RGBA", (8, 4), (255, 0, 0, 128))

    assert cache.save_image(img, "red.jpg", as_jpeg=True, quality=0.5)
    assert cache.save_image(img, "red.png", as_jpeg=False)

    jpeg = cache.fetch_image(custom_key="red.jpg")
    assert jpeg.format == "JPEG"
    assert jpeg.size == (8, 4)
    png = cache.fetch_image(custom_key="red.png")
    assert png.format == "PNG"
    assert png.mode == "RGBA"


def test_fetch_image_undecodable_is_none(cache):
    pytest.importorskip("PIL")
    assert cache.fetch_image(URL) is None


def test_is_remote_locator():
    assert is_remote_locator("http://e.com/a.png")
    assert is_remote_locator("https://e.com/a.png?size=2")
    assert not is_remote_locator("file:///etc/passwd")
    assert not is_remote_locator("e.com/a.png")
    assert not is_remote_locator(None)


class FakeResponse:
    def __init__(self, status_code, content):
        self.status_code = status_code
        self.content = content


@pytest.mark.parametrize("outcome", [
    FakeResponse(404, b"missing"),
    FakeResponse(300, b"<html>choose one</html>"),
    FakeResponse(304, b"not modified"),
    FakeResponse(204, b""),
    FakeResponse(200, b""),
    requests.exceptions.ConnectionError("refused"),
    requests.exceptions.Timeout("slow"),
])
def test_remote_transport_collapses_failures(monkeypatch, outcome):
    transport = RemoteTransport(timeout=1)

    def fake_get(url, timeout=None):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(transport._session, "get", fake_get)
    assert transport.fetch_bytes(URL) is None
    transport.close()


def test_remote_transport_returns_body(monkeypatch):
    calls = {}

    def fake_get(url, timeout=None):
        calls["url"] = url
        calls["timeout"] = timeout
        return FakeResponse(200, b"pixels")

    with RemoteTransport(timeout=7) as transport:
        monkeypatch.setattr(transport._session, "get", fake_get)
        assert transport.fetch_bytes(URL) == b"pixels"
        assert transport._session.headers["User-Agent"].startswith("pixcache/")
    assert calls == {"url": URL, "timeout": 7}


def test_image_cache_wires_real_transport(tmp_path, monkeypatch):
    with ImageCache(tmp_path / "c", tmp_path / "d", timeout=3) as cache:
        monkeypatch.setattr(cache.transport._session, "get",
                            lambda url, timeout=None: FakeResponse(200, b"remote"))
        assert cache.fetch_one(URL) == b"remote"
        assert cache.locate(URL).read_bytes() == b"remote"


def test_redirect_body_is_not_cached(tmp_path, monkeypatch):
    with ImageCache(tmp_path / "c", tmp_path / "d") as cache:
        monkeypatch.setattr(cache.transport._session, "get",
                            lambda url, timeout=None: FakeResponse(300, b"<html>choose one</html>"))
        assert cache.fetch_one(URL) is None
        assert not cache.locate(URL).exists()


@pytest.mark.parametrize("quality", [-0.5, 2.0])
def test_save_image_bad_quality_returns_false(cache, quality):
    Image = pytest.importorskip("PIL.Image")
    assert cache.save_image(Image.new("RGB", (2, 2)), "bad.jpg", quality=quality) is False
    assert not cache.locate(custom_key="bad.jpg").exists()
