"""
Integration tests for the snapshot-and-restart flow.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_proxy.app.main import ProxyService
from shared.test_helpers import UpstreamRecorder, make_config


class TestRestartFlow:
    """A warmed cache survives a restart; a damaged snapshot never blocks startup."""

    @pytest.fixture
    def snapshot_path(self, tmp_path):
        return tmp_path / "cache.json"

    @pytest.fixture
    def upstream(self):
        return UpstreamRecorder(bodies={
            "/widgets/1": b'{"a": 1}',
            "/widgets/2": b'{"b": [1, 2]}',
            "/raw": b"hello",
        })

    def _service(self, snapshot_path, upstream):
        return ProxyService(make_config(snapshot_path), transport=upstream.transport)

    def test_warm_cache_survives_restart(self, snapshot_path, upstream):
        """Three entries saved at shutdown are served by the next process without upstream calls."""
        first = self._service(snapshot_path, upstream)
        with TestClient(first.app) as client:
            for path in ("/widgets/1", "/widgets/2", "/raw"):
                assert client.get(path).status_code == 200
            saved_entries = dict(first.coordinator.store.all_entries())

        assert snapshot_path.exists()
        assert len(upstream.requests) == 3

        second = self._service(snapshot_path, upstream)
        with TestClient(second.app) as client:
            store = second.coordinator.store
            assert store.count() == 3
            assert dict(store.all_entries()) == saved_entries

            assert client.get("/widgets/1").content == b'{"a":1}'
            assert client.get("/widgets/2").content == b'{"b":[1,2]}'
            assert client.get("/raw").content == b"hello"

        assert len(upstream.requests) == 3

    def test_truncated_snapshot_starts_empty(self, snapshot_path, upstream):
        first = self._service(snapshot_path, upstream)
        with TestClient(first.app) as client:
            client.get("/widgets/1")
            client.get("/widgets/2")

        data = snapshot_path.read_bytes()
        snapshot_path.write_bytes(data[: len(data) - 10])

        second = self._service(snapshot_path, upstream)
        with TestClient(second.app) as client:
            assert second.coordinator.store.count() == 0
            assert second.metrics.sample("snapshot_operations_total", operation="load", status="error") == 1.0
            assert client.get("/widgets/1").status_code == 200

        assert len(upstream.requests) == 3

    def test_missing_snapshot_starts_empty(self, snapshot_path, upstream):
        service = self._service(snapshot_path, upstream)
        with TestClient(service.app):
            assert service.coordinator.store.count() == 0

        assert snapshot_path.exists()
