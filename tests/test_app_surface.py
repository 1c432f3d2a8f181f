from fastapi.testclient import TestClient

from platform_access.observability.access_metrics import AccessMetrics


def test_health_is_public(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_request_id_is_echoed_or_generated(client: TestClient):
    echoed = client.get("/health", headers={"X-Request-ID": "req-123"})
    generated = client.get("/health")

    assert echoed.headers["X-Request-ID"] == "req-123"
    assert generated.headers["X-Request-ID"]


def test_metrics_endpoint_renders_prometheus_text(client: TestClient, admin_headers):
    client.get("/api/admin/me", headers=admin_headers)
    client.get("/api/admin/me")
    client.get("/api/v1/tenant", headers={"X-Tenant-Slug": "nope"})

    response = client.get("/api/v1/access/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert 'admin_auth_total{outcome="allowed"} 1' in body
    assert 'admin_auth_total{outcome="UNAUTHORIZED"} 1' in body
    assert 'admin_auth_duration_ms_count{outcome="allowed"} 1' in body
    assert 'tenant_resolution_total{outcome="TENANT_NOT_FOUND"} 1' in body


def test_metrics_render_signin_decisions():
    metrics = AccessMetrics()
    metrics.inc_signin_decision(outcome="block", reason="mfa_required")
    metrics.inc_signin_decision(outcome="block", reason="mfa_required")

    rendered = metrics.render_prometheus()

    assert 'signin_decision_total{outcome="block",reason="mfa_required"} 2' in rendered
    assert rendered.endswith("\n")


def test_metrics_histogram_buckets_are_cumulative():
    metrics = AccessMetrics()
    metrics.observe_admin_auth_duration_ms(outcome="allowed", duration_ms=7)
    metrics.observe_admin_auth_duration_ms(outcome="allowed", duration_ms=700)

    rendered = metrics.render_prometheus()

    assert 'admin_auth_duration_ms_bucket{outcome="allowed",le="5"} 0' in rendered
    assert 'admin_auth_duration_ms_bucket{outcome="allowed",le="10"} 1' in rendered
    assert 'admin_auth_duration_ms_bucket{outcome="allowed",le="1000"} 2' in rendered
    assert 'admin_auth_duration_ms_bucket{outcome="allowed",le="+Inf"} 2' in rendered
