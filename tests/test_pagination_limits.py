from nasuha_connect.core.db import contains_pattern
from nasuha_connect.core.pagination import PageParams, clamp_limit, page_meta


def test_clamp_limit():
    assert clamp_limit(20) == 20
    assert clamp_limit(0) == 1
    assert clamp_limit(500) == 100
    assert clamp_limit(500, max_size=10) == 10
    assert clamp_limit(5, max_size=0) == 5


def test_page_meta():
    params = PageParams(page=3, limit=10)
    assert params.offset == 20
    assert page_meta(params, 21) == {"page": 3, "limit": 10, "total": 21, "totalPages": 3}
    assert page_meta(params, 0)["totalPages"] == 0


def test_limit_is_capped(api):
    resp = api.client.get("/api/kordas", params={"limit": 1000}, headers=api.admin_headers())
    assert resp.status_code == 200
    assert resp.json()["meta"]["limit"] == 100
    assert resp.headers["X-Page-Size"] == "100"


def test_invalid_page_rejected(api):
    headers = api.admin_headers()
    resp = api.client.get("/api/kordas", params={"page": 0}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    resp = api.client.get("/api/kordas", params={"limit": 0}, headers=headers)
    assert resp.status_code == 422


def test_contains_pattern_escapes_wildcards():
    assert contains_pattern("poster") == "%poster%"
    assert contains_pattern("100%") == "%100\\%%"
    assert contains_pattern("a_b") == "%a\\_b%"
    assert contains_pattern("c:\\x") == "%c:\\\\x%"
