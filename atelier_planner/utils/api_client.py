from typing import Iterable, Optional

import requests

from atelier_planner.models.scheduling_model import Placement, PlanningSnapshot


class HostAPIClient:
    """Talks to the special-week web application that owns the data."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def get(self, endpoint: str):
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def post(self, endpoint: str, data: dict):
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        response = self.session.post(url, json=data, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def fetch_snapshot(self, endpoint: str = "planning/snapshot") -> PlanningSnapshot:
        payload = self.get(endpoint)
        # host responses are wrapped as {"success": ..., "data": ...}
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]
        return PlanningSnapshot.model_validate(payload)

    def push_placements(self, placements: Iterable[Placement], endpoint: str = "planning/placements"):
        return self.post(endpoint, {"placements": [p.model_dump() for p in placements]})
