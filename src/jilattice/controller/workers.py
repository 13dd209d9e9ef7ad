"""
Background Workers (Threading)
==============================
Runs lattice generation off the GUI thread.

Why is this file needed?
------------------------
1. Responsiveness: Large lattices take long enough to freeze the GUI, so
   `LatticeWorker` runs `generate_lattice` in a QThread.
2. Isolation: `handle_request` is the whole worker contract. It takes the
   settings by value and always answers, either with a payload or with a
   structured error; it never raises.
3. Ordering: `LatticeRequestDispatcher` numbers requests and drops any
   response that is not for the latest one, so a slow old request can never
   overwrite a newer lattice. It also serves repeats from an LRU cache.

Classes:
    LatticeWorker: QThread running one request.
    LatticeRequestDispatcher: GUI-side client issuing requests and filtering responses.
"""
from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Mapping, Optional, Tuple

from PySide6.QtCore import QObject, QThread, Signal, Slot

from jilattice.controller.cache import LatticeCache, display_key, topology_key
from jilattice.controller.generator import generate_lattice
from jilattice.model.graph import LatticeGraph
from jilattice.model.naming import rename_lattice
from jilattice.model.serialization import deserialize_lattice, serialize_lattice
from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)


def handle_request(request: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Worker entry point.

    Args:
        request: {"id": int, "settings": dict | LatticeSettings}

    Returns:
        {"id", "payload": {"nodes", "edges", "positions"}} on success, or
        {"id", "error": {"message", "stack"}} on any failure.
    """
    request_id = None
    try:
        request_id = request.get("id")
        graph = generate_lattice(request.get("settings") or {})
        return {"id": request_id, "payload": serialize_lattice(graph)}
    except Exception as e:
        logger.exception(f"Lattice generation failed for request {request_id}: {e}")
        return {"id": request_id, "error": {"message": str(e), "stack": traceback.format_exc()}}


class LatticeWorker(QThread):
    # Emits the response dict; the position buffer inside is passed by reference
    response_ready = Signal(object)

    def __init__(self, request: Dict[str, Any]):
        super().__init__()
        self.request = request

    def run(self) -> None:
        logger.info(f"Starting lattice request {self.request.get('id')} in background thread...")
        self.response_ready.emit(handle_request(self.request))


class LatticeRequestDispatcher(QObject):
    lattice_ready = Signal(int, object)  # (request_id, LatticeGraph)
    generation_failed = Signal(int, str)  # (request_id, message)

    def __init__(self, cache: Optional[LatticeCache[LatticeGraph]] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.cache: LatticeCache[LatticeGraph] = cache if cache is not None else LatticeCache()
        self._latest_id = 0
        self._pending: Dict[int, Tuple[str, str]] = {}
        self._workers: Dict[int, LatticeWorker] = {}

    def request(self, settings: LatticeSettings | Mapping[str, Any]) -> int:
        """Ask for a lattice. Returns the request id the answer will carry."""
        settings = LatticeSettings.coerce(settings)
        self._latest_id += 1
        request_id = self._latest_id
        topo, display = topology_key(settings), display_key(settings)

        entry = self.cache.get(topo)
        if entry is not None:
            graph = entry.value
            if entry.display_key != display:
                graph = rename_lattice(graph, settings)
                self.cache.put(topo, display, graph)
            logger.debug(f"Request {request_id} served from cache")
            self.lattice_ready.emit(request_id, graph)
            return request_id

        self._pending[request_id] = (topo, display)
        self._start_worker({"id": request_id, "settings": settings.to_dict()})
        return request_id

    def _start_worker(self, request: Dict[str, Any]) -> None:
        worker = LatticeWorker(request)
        worker.response_ready.connect(self.on_response)
        worker.finished.connect(lambda rid=request["id"]: self._workers.pop(rid, None))
        self._workers[request["id"]] = worker
        worker.start()

    @Slot(object)
    def on_response(self, response: Dict[str, Any]) -> None:
        request_id = response.get("id")
        keys = self._pending.pop(request_id, None)
        if request_id != self._latest_id:
            logger.debug(f"Discarding stale lattice response {request_id} (latest is {self._latest_id})")
            return

        error = response.get("error")
        if error is not None:
            logger.error(f"Lattice request {request_id} failed: {error.get('message')}")
            self.generation_failed.emit(request_id, str(error.get("message")))
            return

        graph = deserialize_lattice(response["payload"])
        if keys is not None:
            self.cache.put(keys[0], keys[1], graph)
        self.lattice_ready.emit(request_id, graph)
