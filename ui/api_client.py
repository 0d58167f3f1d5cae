import os
from typing import Any, Dict, List

import httpx


def _get_api_base() -> str:
	return os.getenv("API_BASE_URL", "http://localhost:8000")


def _client() -> httpx.Client:
	return httpx.Client(base_url=_get_api_base(), timeout=30)


def health() -> bool:
	with _client() as c:
		resp = c.get("/api/v1/health")
		resp.raise_for_status()
		return (resp.json() or {}).get("status") == "ok"


def search(query: str) -> Dict[str, Any]:
	with _client() as c:
		resp = c.post("/api/v1/history/search", json={"query": query})
		resp.raise_for_status()
		return resp.json()


def current_state() -> Dict[str, Any]:
	with _client() as c:
		resp = c.get("/api/v1/history/state")
		resp.raise_for_status()
		return resp.json()


def section_titles(result: Dict[str, Any]) -> List[str]:
	return [str(s.get("label", "")) for s in result.get("sections", [])]
