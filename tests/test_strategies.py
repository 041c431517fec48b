"""
Tests for the per-class caching strategies.

Network behaviour is scripted with FakeTransport; background refreshes
are awaited with engine.background.drain().
"""
import threading

from offline_engine.cache.core import CacheRecord
from offline_engine.engine import OfflineEngine
from offline_engine.fetch import Request, Response

from conftest import FailingRegistry, url


def api_get(path: str) -> Request:
    return Request(url=url(path), headers={"Accept": "application/json"})


# =============================================================================
# API: network-first
# =============================================================================

def test_api_success_is_cached_and_served_offline_byte_for_byte(engine, transport):
    body = b'{"temp": 21.5, "unit": "\xc2\xb0C"}'
    transport.route("/api/weather", body, headers={"Content-Type": "application/json"})

    online = engine.fetch(api_get("/api/weather"))
    assert online.body == body

    transport.offline = True
    offline = engine.fetch(api_get("/api/weather"))
    assert offline.status == 200
    assert offline.body == body


def test_api_offline_without_cache_returns_offline_json(engine, transport, settings):
    transport.offline = True
    response = engine.fetch(api_get("/api/contacts"))

    data = response.json()
    assert data["status"] == "offline"
    assert data["message"] == settings.offline_message
    assert "timestamp" in data
    assert response.header(settings.offline_marker_header) == "offline"
    assert response.header("content-type") == "application/json"


def test_api_writes_to_api_namespace(engine, transport, registry, settings):
    transport.route("/api/ai/models", b"[]")
    engine.fetch(api_get("/api/ai/models"))
    assert registry.keys(settings.api_cache_name) == [url("/api/ai/models")]
    assert registry.keys(settings.main_cache_name) == []


def test_api_error_status_is_returned_but_not_cached(engine, transport, registry, settings):
    transport.route("/api/weather", b"boom", status=500)
    response = engine.fetch(api_get("/api/weather"))
    assert response.status == 500
    assert registry.get(settings.api_cache_name, url("/api/weather")) is None


def test_api_server_error_does_not_poison_previous_entry(engine, transport):
    transport.route("/api/weather", b"good")
    engine.fetch(api_get("/api/weather"))
    transport.route("/api/weather", b"bad", status=503)
    engine.fetch(api_get("/api/weather"))

    transport.offline = True
    assert engine.fetch(api_get("/api/weather")).body == b"good"


def test_api_query_strings_are_distinct_keys(engine, transport):
    transport.route("/api/weather?city=oslo", b"oslo")
    transport.route("/api/weather?city=rome", b"rome")
    engine.fetch(api_get("/api/weather?city=oslo"))
    engine.fetch(api_get("/api/weather?city=rome"))

    transport.offline = True
    assert engine.fetch(api_get("/api/weather?city=rome")).body == b"rome"


# =============================================================================
# Navigation: network-first with offline document
# =============================================================================

def nav(path: str) -> Request:
    return Request(url=url(path), mode="navigate", headers={"Accept": "text/html"})


def test_navigation_success_is_cached_in_main(engine, transport, registry, settings):
    transport.route("/about", "<html>about</html>")
    response = engine.fetch(nav("/about"))
    assert response.body == b"<html>about</html>"
    assert registry.get(settings.main_cache_name, url("/about")).body == b"<html>about</html>"


def test_navigation_offline_serves_offline_document(engine, transport, shell_routes):
    engine.install()
    transport.offline = True
    response = engine.fetch(nav("/anything"))
    assert response.body == b"<html>offline</html>"


def test_navigation_offline_without_offline_document_serves_root(engine, transport, registry, settings):
    registry.open(settings.main_cache_name).put(
        url("/"), CacheRecord.from_response(Response(body=b"<html>home</html>"))
    )
    transport.offline = True
    response = engine.fetch(nav("/deep/link"))
    assert response.body == b"<html>home</html>"


def test_navigation_offline_with_nothing_cached_is_unavailable(engine, transport, settings):
    transport.offline = True
    response = engine.fetch(nav("/deep/link"))
    assert response.status == settings.unavailable_status


def test_navigation_redirect_is_not_cached(engine, transport, registry, settings):
    transport.route("/login", b"", status=302, headers={"Location": "/sso"})
    engine.fetch(nav("/login"))
    assert registry.get(settings.main_cache_name, url("/login")) is None


# =============================================================================
# Static: cache-first with background revalidation
# =============================================================================

def static_get(path: str, accept: str = "*/*") -> Request:
    return Request(url=url(path), headers={"Accept": accept})


def test_static_hit_returns_cached_then_refreshes(engine, transport):
    transport.route("/app.js", "v1")
    assert engine.fetch(static_get("/app.js")).body == b"v1"

    transport.route("/app.js", "v2")
    assert engine.fetch(static_get("/app.js")).body == b"v1"
    assert engine.background.drain(timeout=5)

    assert engine.fetch(static_get("/app.js")).body == b"v2"


def test_static_hit_does_not_wait_for_refresh(engine, transport):
    transport.route("/app.js", "v1")
    engine.fetch(static_get("/app.js"))

    transport.gate = threading.Event()
    transport.route("/app.js", "v2")
    try:
        # Gate holds the background fetch; the cached body still comes back
        assert engine.fetch(static_get("/app.js")).body == b"v1"
    finally:
        transport.gate.set()
    assert engine.background.drain(timeout=5)
    transport.gate = None
    assert engine.fetch(static_get("/app.js")).body == b"v2"


def test_static_failed_refresh_keeps_cached_entry(engine, transport):
    transport.route("/app.js", "v1")
    engine.fetch(static_get("/app.js"))

    transport.offline = True
    assert engine.fetch(static_get("/app.js")).body == b"v1"
    assert engine.background.drain(timeout=5)
    assert engine.fetch(static_get("/app.js")).body == b"v1"


def test_static_refresh_with_error_status_keeps_cached_entry(engine, transport):
    transport.route("/app.js", "v1")
    engine.fetch(static_get("/app.js"))

    transport.route("/app.js", "oops", status=500)
    engine.fetch(static_get("/app.js"))
    assert engine.background.drain(timeout=5)
    assert engine.fetch(static_get("/app.js")).body == b"v1"


def test_static_miss_caches_only_success(engine, transport, registry, settings):
    transport.route("/missing.png", b"", status=404)
    response = engine.fetch(static_get("/missing.png"))
    assert response.status == 404
    assert registry.get(settings.main_cache_name, url("/missing.png")) is None


def test_static_offline_image_gets_svg_placeholder(engine, transport):
    transport.offline = True
    response = engine.fetch(static_get("/photo.jpg", accept="image/avif,image/webp,*/*"))
    assert response.status == 200
    assert response.header("Content-Type") == "image/svg+xml"
    assert response.body.startswith(b"<svg")


def test_static_offline_non_image_is_unavailable(engine, transport, settings):
    transport.offline = True
    response = engine.fetch(static_get("/data.csv", accept="text/csv"))
    assert response.status == settings.unavailable_status
    assert response.body == b""


def test_static_offline_without_accept_header_is_unavailable(engine, transport, settings):
    transport.offline = True
    response = engine.fetch(Request(url=url("/font.woff2")))
    assert response.status == settings.unavailable_status


def test_static_served_from_any_namespace(engine, transport, registry):
    registry.open("legacy-v0").put(
        url("/legacy.js"), CacheRecord.from_response(Response(body=b"legacy"))
    )
    transport.offline = True
    assert engine.fetch(static_get("/legacy.js")).body == b"legacy"


def test_refresh_wins_over_older_namespace_copy(engine, transport, registry):
    registry.open("shell-v1").put(
        url("/app.js"), CacheRecord.from_response(Response(body=b"old"))
    )
    transport.route("/app.js", "new")

    assert engine.fetch(static_get("/app.js")).body == b"old"
    assert engine.background.drain(timeout=5)
    assert engine.fetch(static_get("/app.js")).body == b"new"


def test_precached_asset_uses_cache_first(engine, transport, shell_routes):
    engine.install()
    transport.offline = True
    assert engine.fetch(static_get("/style.css")).body == b"body{}"


def test_revalidation_is_not_duplicated_while_running(engine, transport):
    transport.route("/app.js", "v1")
    engine.fetch(static_get("/app.js"))
    before = len(transport.calls_to("/app.js"))

    transport.gate = threading.Event()
    try:
        engine.fetch(static_get("/app.js"))
        engine.fetch(static_get("/app.js"))
    finally:
        transport.gate.set()
    assert engine.background.drain(timeout=5)
    assert len(transport.calls_to("/app.js")) - before == 1


# =============================================================================
# Bypass and storage failures
# =============================================================================

def test_non_get_is_not_intercepted(engine, transport):
    request = Request(url=url("/api/contacts"), method="POST", body=b"{}")
    assert engine.fetch(request) is None
    assert transport.calls == []


def test_storage_read_failure_is_a_cache_miss(settings, transport):
    engine = OfflineEngine(settings, transport, registry=FailingRegistry(fail_reads=True))
    try:
        transport.route("/app.js", "fresh")
        assert engine.fetch(static_get("/app.js")).body == b"fresh"

        transport.offline = True
        assert engine.fetch(api_get("/api/weather")).json()["status"] == "offline"
    finally:
        engine.close()


def test_storage_write_failure_still_returns_network_response(settings, transport):
    engine = OfflineEngine(settings, transport, registry=FailingRegistry(fail_writes=True))
    try:
        transport.route("/api/weather", b"live")
        assert engine.fetch(api_get("/api/weather")).body == b"live"
        assert engine.executor.get_stats()["storage_errors"] == 1
    finally:
        engine.close()


class BrokenTransport:
    def fetch(self, request):
        raise RuntimeError("bug")


def test_transport_bug_falls_back_like_network_failure(settings, registry):
    registry.open(settings.api_cache_name).put(
        url("/api/weather"), CacheRecord.from_response(Response(body=b"cached"))
    )
    errors = []
    engine = OfflineEngine(
        settings,
        BrokenTransport(),
        registry=registry,
        error_sink=lambda label, error: errors.append((label, error)),
    )
    try:
        assert engine.fetch(api_get("/api/weather")).body == b"cached"
        assert engine.fetch(api_get("/api/contacts")).json()["status"] == "offline"
        assert engine.fetch(nav("/inbox")).status == settings.unavailable_status
        assert engine.fetch(static_get("/photo.jpg", accept="image/png")).body.startswith(b"<svg")
        assert errors == []
    finally:
        engine.close()


def test_transport_bug_during_refresh_keeps_cached_entry(settings, registry):
    registry.open(settings.main_cache_name).put(
        url("/app.js"), CacheRecord.from_response(Response(body=b"v1"))
    )
    errors = []
    engine = OfflineEngine(
        settings,
        BrokenTransport(),
        registry=registry,
        error_sink=lambda label, error: errors.append((label, error)),
    )
    try:
        assert engine.fetch(static_get("/app.js")).body == b"v1"
        assert engine.background.drain(timeout=5)
        assert errors == []
        assert engine.fetch(static_get("/app.js")).body == b"v1"
    finally:
        engine.close()
