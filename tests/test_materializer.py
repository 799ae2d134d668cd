import logging

from railfare.src import materializer
from railfare.src.enums import BatchStatus
from railfare.src.route_distance import RouteDistanceEngine


def test_materialize_all_distances_logs_summary(sessionMaker, network, caplog):
    engine = RouteDistanceEngine(sessionMaker, maxWorkers=1)
    with caplog.at_level(logging.INFO, logger="Materializer"):
        result = materializer.materializeAllDistances(engine)
    assert result.status == BatchStatus.SUCCESS
    assert result.totalDistances == 12
    assert "SUCCESS: 1 trains processed" in caplog.text


def test_main_logs_failures(monkeypatch, caplog):
    def explode(engine):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(materializer, "materializeAllDistances", explode)
    with caplog.at_level(logging.ERROR, logger="Materializer"):
        materializer.main()
    assert "materializer.py failed" in caplog.text
