"""HTTP endpoint the master exposes to worker nodes.

Routes:
    GET  /health                 liveness and role information
    POST /settle                 a worker settles its result for a phase
    GET  /phases/<phase>/status  settlement progress of a phase
"""

import logging
import threading
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from pydantic import BaseModel, Field, ValidationError, model_validator
from werkzeug.serving import make_server

from ..core.errors import ConnectivityError, ProtocolViolation
from ..core.results import NodeResult
from ..utils.logging import LoggerMixin


class SettleRequest(BaseModel):
    """Body of a settle call."""
    phase: str = Field(min_length=1)
    order: int = Field(ge=1)
    total_operations: int = Field(ge=0)
    window_start: float
    window_end: float
    duration_seconds: float = Field(ge=0)
    latency_histogram: Optional[str] = None

    @model_validator(mode='after')
    def check_window(self):
        if self.window_end < self.window_start:
            raise ValueError("window_end precedes window_start")
        return self

    @classmethod
    def from_node_result(cls, phase: str, result: NodeResult) -> 'SettleRequest':
        return cls(phase=phase, **result.to_dict())

    def to_node_result(self) -> NodeResult:
        return NodeResult(
            order=self.order,
            total_operations=self.total_operations,
            window_start=self.window_start,
            window_end=self.window_end,
            duration_seconds=self.duration_seconds,
            latency_histogram=self.latency_histogram
        )


class MasterAPI(LoggerMixin):
    """Flask application wrapping a master coordinator.

    The coordinator must provide ``settle(phase, result)``,
    ``phase_status(phase)`` and ``health()``; the first two raise
    :class:`ProtocolViolation` for calls the master rejects.
    """

    def __init__(self, coordinator):
        super().__init__()
        self.coordinator = coordinator
        self.app = Flask(__name__)
        self._register_routes()

    def _register_routes(self):
        """Register all HTTP routes."""

        @self.app.route('/health', methods=['GET'])
        def health():
            """Health check endpoint."""
            return jsonify(self.coordinator.health())

        @self.app.route('/settle', methods=['POST'])
        def settle():
            """Settle endpoint."""
            body = request.get_json(silent=True)
            if body is None:
                return jsonify({'error': 'expected a JSON body'}), 400

            try:
                settle_request = SettleRequest.model_validate(body)
            except ValidationError as e:
                self.logger.warning(f"Malformed settle call: {e}")
                return jsonify({'error': str(e)}), 400

            try:
                self.coordinator.settle(settle_request.phase, settle_request.to_node_result())
            except ProtocolViolation as e:
                self.logger.error(f"Rejected settle call: {e}")
                return jsonify({'error': str(e)}), 409

            return jsonify({'status': 'ok'})

        @self.app.route('/phases/<phase>/status', methods=['GET'])
        def phase_status(phase):
            """Settlement progress endpoint."""
            try:
                return jsonify(self.coordinator.phase_status(phase))
            except ProtocolViolation as e:
                return jsonify({'error': str(e)}), 404


class MasterServer(LoggerMixin):
    """Serves a Flask app from a background thread."""

    def __init__(self, app: Flask, host: str, port: int):
        super().__init__()
        # per-request access lines are noise during a benchmark
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        try:
            self._server = make_server(host, port, app, threaded=True)
        except OSError as e:
            raise ConnectivityError(f"cannot bind master endpoint on {host}:{port}: {e}") from e
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self._server.server_port

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="master-rpc",
            daemon=True
        )
        self._thread.start()
        self.logger.info(f"Master endpoint listening on port {self.port}")

    def stop(self) -> None:
        if self._thread is None:
            return
        self._server.shutdown()
        self._thread.join()
        self._server.server_close()
        self._thread = None
        self.logger.info("Master endpoint stopped")


def error_detail(payload: Any) -> str:
    if isinstance(payload, dict) and 'error' in payload:
        return str(payload['error'])
    return str(payload)


def health_payload(role: str, order: int, peers) -> Dict[str, Any]:
    return {
        'status': 'healthy',
        'role': role,
        'order': order,
        'peers': list(peers),
    }
