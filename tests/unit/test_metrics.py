"""
Unit tests for the domain counters.
"""

from prometheus_client import REGISTRY

from atelier.blueprints.metrics import record, checkouts_total


def _sample(outcome):
    return REGISTRY.get_sample_value('checkouts_total', {'outcome': outcome}) or 0


def test_record_increments_counter():
    before = _sample('unit-test')
    record(checkouts_total, outcome='unit-test')
    record(checkouts_total, 2, outcome='unit-test')
    assert _sample('unit-test') == before + 3


def test_record_never_raises_on_bad_labels():
    record(checkouts_total, status='wrong-label')


def test_metrics_endpoint(client):
    record(checkouts_total, outcome='exposed')
    response = client.get('/metrics')
    assert response.status_code == 200
    assert b'checkouts_total{outcome="exposed"}' in response.data
