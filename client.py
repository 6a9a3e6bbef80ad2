import requests
from typing import Optional

from errors import SyncFailure


class SyncClient:
    """Deliver outbox batches to the remote sync endpoint."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def submit_batch(self, events: list[dict]) -> bool:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            resp = requests.post(
                f"{self.base_url}/sync/batch",
                json={"events": events},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SyncFailure(str(e)) from e
        if not resp.ok:
            return False
        try:
            body = resp.json()
        except ValueError:
            return True
        if isinstance(body, dict) and "ok" in body:
            return bool(body["ok"])
        return True


class ProgressionClient:
    """Simple REST client for the progression API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def list_machines(self):
        resp = requests.get(f"{self.base_url}/machines")
        resp.raise_for_status()
        return resp.json()

    def log_session(
        self,
        machine_id: str,
        result: str,
        date: Optional[str] = None,
        notes: str = "",
        progress: str = "",
        confirm: bool = False,
    ) -> dict:
        params = {"result": result, "notes": notes, "progress": progress, "confirm": confirm}
        if date:
            params["date"] = date
        resp = requests.post(f"{self.base_url}/machines/{machine_id}/sessions", params=params)
        resp.raise_for_status()
        return resp.json()

    def start_workout(self, workout_id: str, date: Optional[str] = None) -> dict:
        params = {"date": date} if date else {}
        resp = requests.post(f"{self.base_url}/workouts/{workout_id}/start", params=params)
        resp.raise_for_status()
        return resp.json()

    def mark_item(self, machine_id: str, result: str, confirm: bool = False, **params: str) -> dict:
        resp = requests.post(
            f"{self.base_url}/active_workout/items/{machine_id}",
            params={"result": result, "confirm": confirm, **params},
        )
        resp.raise_for_status()
        return resp.json()

    def flush(self) -> dict:
        resp = requests.post(f"{self.base_url}/sync/flush")
        resp.raise_for_status()
        return resp.json()
