"""Client side of the master endpoint, used by worker nodes."""

import time
from typing import Any, Dict, Optional

import requests

from ..core.errors import ConnectivityError, SettlementError
from ..core.results import NodeResult
from ..utils.logging import LoggerMixin
from .master_api import SettleRequest, error_detail


class MasterClient(LoggerMixin):
    """Talks to the master node over HTTP."""

    def __init__(
        self,
        master_addr: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        super().__init__()
        self.master_addr = master_addr
        self.base_url = f"http://{master_addr}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def settle(self, phase: str, result: NodeResult) -> None:
        """Send this node's result for a phase to the master.

        Raises:
            SettlementError: the master is unreachable or rejected the call
        """
        payload = SettleRequest.from_node_result(phase, result).model_dump()
        try:
            response = self.session.post(f"{self.base_url}/settle", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise SettlementError(f"settling {phase} with master {self.master_addr} failed: {e}") from e

        if response.status_code != 200:
            try:
                detail = error_detail(response.json())
            except ValueError:
                detail = response.text
            raise SettlementError(
                f"master {self.master_addr} rejected {phase} settle "
                f"(HTTP {response.status_code}): {detail}"
            )
        self.logger.debug(f"Settled {phase} phase with master {self.master_addr}")

    def health(self) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def phase_status(self, phase: str) -> Dict[str, Any]:
        response = self.session.get(f"{self.base_url}/phases/{phase}/status", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def wait_until_ready(self, deadline_seconds: float, interval: float = 0.5) -> Dict[str, Any]:
        """Poll the master's health endpoint until it answers.

        Raises:
            ConnectivityError: the master did not answer before the deadline
        """
        deadline = time.monotonic() + deadline_seconds
        while True:
            try:
                return self.health()
            except requests.RequestException as e:
                if time.monotonic() >= deadline:
                    raise ConnectivityError(
                        f"master {self.master_addr} not reachable within {deadline_seconds}s: {e}"
                    ) from e
                self.logger.debug(f"Master {self.master_addr} not ready yet: {e}")
                time.sleep(interval)

    def close(self) -> None:
        self.session.close()
