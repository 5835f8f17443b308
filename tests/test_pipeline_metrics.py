import pytest

from erldash.metrics.pipeline import PipelineMetrics, get_pipeline_metrics


def test_registries_are_isolated():
    a = PipelineMetrics()
    b = PipelineMetrics()
    a.poll_cycles.inc()
    assert a.registry.get_sample_value("erldash_poll_cycles_total") == 1.0
    assert b.registry.get_sample_value("erldash_poll_cycles_total") == 0.0


def test_state_codes(metrics):
    metrics.set_state("polling")
    assert metrics.registry.get_sample_value("erldash_scheduler_state") == 1.0
    metrics.set_state("terminated")
    assert metrics.registry.get_sample_value("erldash_scheduler_state") == 2.0
    with pytest.raises(KeyError):
        metrics.set_state("sleeping")


def test_cycle_histogram_observes(metrics):
    metrics.poll_cycle_seconds.observe(0.02)
    assert metrics.registry.get_sample_value("erldash_poll_cycle_seconds_count") == 1.0


def test_singleton_and_reset():
    first = get_pipeline_metrics()
    assert get_pipeline_metrics() is first
    assert get_pipeline_metrics(reset=True) is not first


def test_metrics_server_starts_once(monkeypatch, metrics):
    from erldash.metrics import server

    calls = []
    monkeypatch.setattr(server, "_STARTED", None)
    monkeypatch.setattr(server, "start_http_server",
                        lambda port, addr, registry: calls.append((port, addr, registry)))
    assert server.start_metrics_server(9300, "127.0.0.1", metrics) is metrics
    server.start_metrics_server(9301, "127.0.0.1", metrics)
    assert calls == [(9300, "127.0.0.1", metrics.registry)]
