"""MetricsCollector tests: counters, categories, latency summaries, thread safety."""

import threading

from consent_engine.observability.metrics import MetricsCollector


def test_metrics_counter_increment():
    """Counter increments correctly."""
    m = MetricsCollector()
    m.increment("consent_created")
    m.increment("consent_created", 2)
    out = m.export_metrics()
    assert out["counters"]["consent_created"] == 3
    assert m.counter("consent_created") == 3


def test_metrics_count_by_category():
    m = MetricsCollector()
    m.increment("consent_status_changed", 1, category="revoked")
    m.increment("consent_status_changed", 1, category="revoked")
    m.increment("consent_status_changed", 1, category="expired")
    assert m.export_metrics()["counters_by_category"]["consent_status_changed"] == {"revoked": 2, "expired": 1}
    assert m.counter("consent_status_changed") == 3
    assert m.counter("consent_status_changed", category="revoked") == 2
    assert m.counter("consent_status_changed", category="active") == 0


def test_latency_summary():
    m = MetricsCollector()
    for value in (10.0, 30.0, 20.0):
        m.observe_latency("ledger_append_latency_ms", value)
    summary = m.export_metrics()["latency_ms"]["ledger_append_latency_ms"]["all"]
    assert summary == {"count": 3, "sum": 60.0, "min": 10.0, "max": 30.0, "mean": 20.0}


def test_latency_by_operation_also_counts_in_all():
    m = MetricsCollector()
    m.observe_latency("ledger_append_latency_ms", 5.0, operation="consent.created")
    m.observe_latency("ledger_append_latency_ms", 15.0, operation="consent.revoked")
    ops = m.export_metrics()["latency_ms"]["ledger_append_latency_ms"]
    assert ops["consent.created"]["count"] == 1
    assert ops["consent.revoked"]["max"] == 15.0
    assert ops["all"]["count"] == 2


def test_metrics_thread_safe():
    """Concurrent increments are safe."""
    m = MetricsCollector()

    def inc():
        for _ in range(100):
            m.increment("consent_cache_hit")

    threads = [threading.Thread(target=inc) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert m.export_metrics()["counters"]["consent_cache_hit"] == 1000


def test_metrics_reset():
    """Reset clears all metrics."""
    m = MetricsCollector()
    m.increment("x", category="a")
    m.observe_latency("y", 1.0)
    m.reset()
    assert m.export_metrics() == {"counters": {}, "counters_by_category": {}, "latency_ms": {}}
