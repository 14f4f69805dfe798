"""Async client for the remote pathway service (Bland AI pathway API)."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx

from engine.conversation import PathwayGraph

logger = logging.getLogger("voicepath.remote")


class PathwayServiceError(RuntimeError):
    """Raised when the remote pathway service cannot be reached or rejects a call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PathwayServiceClient:
    """Thin wrapper around the pathway endpoints.

    Pass ``client`` to reuse an existing :class:`httpx.AsyncClient` (tests
    hand in one built on :class:`httpx.MockTransport`); otherwise a client is
    opened per request.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.bland.ai/v1",
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self._api_key, "Content-Type": "application/json"}

    @asynccontextmanager
    async def _client_context(self):
        if self._client is not None:
            yield self._client
            return
        managed_client = httpx.AsyncClient(timeout=self._timeout)
        try:
            yield managed_client
        finally:
            await managed_client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self._base_url}{path}"
        logger.info("%s %s", method, path)
        try:
            async with self._client_context() as http_client:
                response = await http_client.request(method, url, headers=self._headers(), json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.exception("Pathway service rejected %s %s", method, path)
            detail = exc.response.text[:200] if exc.response is not None else ""
            raise PathwayServiceError(
                f"{method} {path} failed with {exc.response.status_code}: {detail}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.exception("Pathway service unreachable for %s %s", method, path)
            raise PathwayServiceError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PathwayServiceError(f"{method} {path} returned invalid JSON") from exc

    async def create_pathway(self, name: str, description: str) -> str:
        body = await self._request("POST", "/pathway/create", {"name": name, "description": description})
        pathway_id = ((body or {}).get("data") or {}).get("pathway_id") or (body or {}).get("pathway_id")
        if not pathway_id:
            raise PathwayServiceError("create response did not include a pathway id")
        return str(pathway_id)

    async def update_pathway(
        self,
        pathway_id: str,
        name: str,
        description: str,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
    ) -> Any:
        payload = {"name": name, "description": description, "nodes": nodes, "edges": edges}
        return await self._request("POST", f"/pathway/{pathway_id}", payload)

    async def publish(self, graph: PathwayGraph) -> str:
        """Allocate a remote pathway and upload ``graph`` into it."""

        pathway_id = await self.create_pathway(graph.name, graph.description)
        payload = graph.to_payload()
        await self.update_pathway(pathway_id, graph.name, graph.description, payload["nodes"], payload["edges"])
        logger.info("Published pathway %r as %s", graph.name, pathway_id)
        return pathway_id

    async def get_pathway(self, pathway_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/pathway/{pathway_id}") or {}

    async def list_pathways(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/pathway")
        if isinstance(body, dict):
            body = body.get("pathways") or body.get("data") or []
        pathways: List[Dict[str, Any]] = []
        for item in body or []:
            entry = dict(item)
            if "pathway_id" not in entry and "id" in entry:
                entry["pathway_id"] = entry.pop("id")
            pathways.append(entry)
        return pathways

    async def delete_pathway(self, pathway_id: str) -> None:
        await self._request("DELETE", f"/pathway/{pathway_id}")
