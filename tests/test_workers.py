import numpy as np
import pytest

from jilattice.controller.workers import LatticeRequestDispatcher, LatticeWorker, handle_request

SMALL = {"root": {"root_limits": [3], "expansion_a": 2, "expansion_b": 1, "expansion_c": 0}}


def test_handle_request_success():
    response = handle_request({"id": 7, "settings": SMALL})
    assert response["id"] == 7
    assert "error" not in response
    payload = response["payload"]
    assert payload["positions"].size == 3 * len(payload["nodes"])


def test_handle_request_reports_errors():
    response = handle_request({"id": 3, "settings": {"visuals": 5}})
    assert response["id"] == 3
    assert "payload" not in response
    assert "visuals" in response["error"]["message"]
    assert "Traceback" in response["error"]["stack"]


def test_handle_request_never_raises():
    response = handle_request(None)
    assert response["id"] is None
    assert "error" in response


def test_worker_runs_synchronously(qapp):
    worker = LatticeWorker({"id": 1, "settings": SMALL})
    received = []
    worker.response_ready.connect(received.append)
    worker.run()
    assert received and received[0]["id"] == 1


class TestDispatcher:
    @pytest.fixture
    def dispatcher(self, qapp):
        dispatcher = LatticeRequestDispatcher()
        dispatcher.started = []
        dispatcher._start_worker = dispatcher.started.append
        dispatcher.ready = []
        dispatcher.failed = []
        dispatcher.lattice_ready.connect(lambda rid, graph: dispatcher.ready.append((rid, graph)))
        dispatcher.generation_failed.connect(lambda rid, msg: dispatcher.failed.append((rid, msg)))
        return dispatcher

    def test_stale_responses_are_discarded(self, dispatcher):
        first = dispatcher.request(SMALL)
        second = dispatcher.request({**SMALL, "simple_mode": True})
        assert (first, second) == (1, 2)

        dispatcher.on_response(handle_request(dispatcher.started[0]))
        assert dispatcher.ready == []

        dispatcher.on_response(handle_request(dispatcher.started[1]))
        assert [rid for rid, _ in dispatcher.ready] == [2]
        assert len(dispatcher.ready[0][1].nodes) == 35

    def test_cache_hit_skips_worker(self, dispatcher):
        dispatcher.request(SMALL)
        dispatcher.on_response(handle_request(dispatcher.started[0]))
        third = dispatcher.request(SMALL)
        assert len(dispatcher.started) == 1
        assert dispatcher.ready[-1][0] == third

    def test_display_change_renames_cached_lattice(self, dispatcher):
        dispatcher.request(SMALL)
        dispatcher.on_response(handle_request(dispatcher.started[0]))
        dispatcher.request({**SMALL, "transposition_vector": {"3": 1}})
        assert len(dispatcher.started) == 1
        graph = dispatcher.ready[-1][1]
        assert graph.get("root").name == "G"
        assert np.array_equal(graph.positions_array(), dispatcher.ready[0][1].positions_array())

    def test_errors_are_forwarded(self, dispatcher):
        dispatcher.request(SMALL)
        dispatcher.on_response({"id": 1, "error": {"message": "boom", "stack": ""}})
        assert dispatcher.failed == [(1, "boom")]
        assert dispatcher.ready == []
