"""
Endpoint tests: workload recording, /stats payload, exempt paths,
error accounting and lifespan wiring, against isolated app instances.
"""
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fastapi import HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from configs.settings import Settings
from services.api_gateway.app import build_sidecar_detector, create_app
from services.metrics_service.sidecar import DisabledSidecarProbe, SidecarProbeCache
from services.metrics_service.stats import LATENCY_FIELDS


class FakeSidecar:
    def __init__(self, present: bool = False) -> None:
        self.present = present
        self.calls = 0

    def is_present(self) -> bool:
        self.calls += 1
        return self.present


class FakeClock:
    def __init__(self, now: float = 500.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


_HOST = {"hostname": "pod-1", "os": "linux", "num_cpu": 4, "kernel_version": "Linux test"}


def _settings(**overrides) -> Settings:
    values = {"simulated_work_ms": 0.0, "sidecar_probe_enabled": False, "window_size": 1000}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def sidecar():
    return FakeSidecar()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def app(sidecar, clock):
    return create_app(_settings(), sidecar=sidecar, host_facts=lambda: dict(_HOST), clock=clock)


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestWorkload:
    def test_root_ok(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == "OK\n"

    def test_requests_recorded(self, client, app):
        for _ in range(3):
            client.get("/")
        snap = app.state.metrics.store.snapshot()
        assert snap.requests == 3
        assert len(snap.latencies) == 3
        assert all(lat >= 0.0 for lat in snap.latencies)

    def test_simulated_work_measured(self, sidecar):
        app = create_app(_settings(simulated_work_ms=20.0), sidecar=sidecar, host_facts=dict)
        TestClient(app).get("/")
        snap = app.state.metrics.store.snapshot()
        assert snap.latencies[0] >= 20.0

    def test_proxied_request_counted(self, client, app):
        client.get("/", headers={"X-Forwarded-For": "1.1.1.1,2.2.2.2"})
        client.get("/")
        snap = app.state.metrics.store.snapshot()
        assert snap.requests_via_proxy == 1
        assert sorted(snap.hop_counts) == [0, 2]

    def test_window_bounded(self, sidecar):
        app = create_app(_settings(window_size=5), sidecar=sidecar, host_facts=dict)
        c = TestClient(app)
        for _ in range(8):
            c.get("/")
        snap = app.state.metrics.store.snapshot()
        assert snap.requests == 8
        assert len(snap) == 5


class TestStats:
    def test_empty_window(self, client):
        body = client.get("/stats").json()
        assert body["requests"] == 0
        assert body["errors"] == 0
        assert body["success_rate_percent"] == 100.0
        assert body["requests_per_second"] == 0.0
        assert body["avg_proxy_hops"] == 0.0
        for name in LATENCY_FIELDS:
            assert name not in body

    def test_stats_not_recorded(self, client):
        client.get("/stats")
        client.get("/health")
        body = client.get("/stats").json()
        assert body["requests"] == 0

    def test_latency_fields_after_traffic(self, client):
        for _ in range(5):
            client.get("/")
        body = client.get("/stats").json()
        assert body["requests"] == 5
        for name in LATENCY_FIELDS:
            assert name in body
        assert body["min_latency_ms"] <= body["p50_latency_ms"] <= body["max_latency_ms"]
        assert body["p50_latency_ms"] <= body["p99_latency_ms"] <= body["p999_latency_ms"]
        assert body["success_rate_percent"] == 100.0

    def test_rate_uses_uptime(self, client, clock):
        client.get("/")
        client.get("/")
        clock.now += 4.0
        body = client.get("/stats").json()
        assert body["uptime_seconds"] == 4
        assert body["requests_per_second"] == 0.5

    def test_forwarding_headers_on_stats_request(self, client):
        body = client.get(
            "/stats",
            headers={"X-Forwarded-For": "1.1.1.1,2.2.2.2,3.3.3.3", "Via": "proxyA"},
        ).json()
        assert body["proxy_hop_count"] == 4
        assert body["service_mesh_hops"] == 0
        assert body["total_hop_count"] == 4
        assert body["proxy_detected"] is True
        assert body["istio_sidecar_detected"] is False

    def test_mesh_headers_on_stats_request(self, client):
        body = client.get(
            "/stats",
            headers={"X-B3-TraceId": "463ac35c9f6413ad", "X-Envoy-Decorator-Operation": "svc:8080/*"},
        ).json()
        assert body["proxy_hop_count"] == 0
        assert body["service_mesh_hops"] == 2
        assert body["total_hop_count"] == 2
        assert body["proxy_detected"] is True
        assert body["istio_sidecar_detected"] is True

    def test_direct_request_no_proxy(self, client):
        body = client.get("/stats").json()
        assert body["total_hop_count"] == 0
        assert body["proxy_detected"] is False

    def test_probe_signal(self, client, sidecar):
        sidecar.present = True
        body = client.get("/stats").json()
        assert body["istio_sidecar_detected"] is True
        assert sidecar.calls == 1

    def test_host_facts_passthrough(self, client):
        body = client.get("/stats").json()
        assert body["hostname"] == "pod-1"
        assert body["num_cpu"] == 4
        assert body["kernel_version"] == "Linux test"

    def test_avg_proxy_hops(self, client):
        client.get("/", headers={"Via": "a, b"})
        client.get("/")
        body = client.get("/stats").json()
        assert body["avg_proxy_hops"] == 1.0
        assert body["requests_via_proxy"] == 1


class TestErrors:
    def test_exception_counted(self, app, client):
        @app.get("/boom")
        def boom():
            raise RuntimeError("kaboom")

        assert client.get("/boom").status_code == 500
        client.get("/")
        body = client.get("/stats").json()
        assert body["requests"] == 2
        assert body["errors"] == 1
        assert body["success_rate_percent"] == 50.0

    def test_5xx_response_counted(self, app, client):
        @app.get("/unavailable")
        def unavailable():
            return PlainTextResponse("down", status_code=503)

        client.get("/unavailable")
        body = client.get("/stats").json()
        assert body["errors"] == 1

    def test_4xx_not_an_error(self, app, client):
        @app.get("/missing")
        def missing():
            raise HTTPException(status_code=404)

        client.get("/missing")
        body = client.get("/stats").json()
        assert body["requests"] == 1
        assert body["errors"] == 0


class TestLifecycle:
    def test_health(self, client, clock):
        clock.now += 3
        body = client.get("/health").json()
        assert body == {"status": "ok", "uptime_seconds": 3}

    def test_lifespan_probes_sidecar_once(self, app, sidecar):
        with TestClient(app) as c:
            assert c.get("/").status_code == 200
        assert sidecar.calls == 1

    def test_startup_sidecar_check_runs_in_worker_thread(self):
        class ThreadRecordingSidecar(FakeSidecar):
            def is_present(self) -> bool:
                self.thread = threading.current_thread()
                return super().is_present()

        sidecar = ThreadRecordingSidecar(present=True)
        app = create_app(_settings(), sidecar=sidecar, host_facts=dict)
        loop_threads = []

        @app.get("/loop-thread")
        async def loop_thread():
            loop_threads.append(threading.current_thread())
            return {}

        with TestClient(app) as c:
            c.get("/loop-thread")
        assert sidecar.calls == 1
        assert sidecar.thread is not loop_threads[0]

    def test_apps_are_isolated(self, sidecar):
        a = create_app(_settings(), sidecar=sidecar, host_facts=dict)
        b = create_app(_settings(), sidecar=sidecar, host_facts=dict)
        TestClient(a).get("/")
        assert TestClient(b).get("/stats").json()["requests"] == 0


class TestSidecarWiring:
    def test_disabled(self):
        assert isinstance(build_sidecar_detector(_settings()), DisabledSidecarProbe)

    def test_enabled(self):
        detector = build_sidecar_detector(_settings(sidecar_probe_enabled=True))
        assert isinstance(detector, SidecarProbeCache)
