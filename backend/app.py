"""FastAPI application factory for VoicePath."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from engine.assembler import AssemblyOptions, AssemblyResult, PathwayAssembler
from engine.persona import Persona
from engine.templates import (
    AppointmentTemplate,
    SalesTemplate,
    SupportTemplate,
    WorkflowTemplate,
    build_appointment_pathway,
    build_sales_pathway,
    build_support_pathway,
    build_workflow_pathway,
)

from .bland_client import PathwayServiceClient, PathwayServiceError
from .config import Settings, get_settings
from .schemas import PathwayBuildResult, PathwayCreate, PathwayList, PathwaySummary

logger = logging.getLogger("voicepath.api")


def options_from_request(payload: PathwayCreate) -> AssemblyOptions:
    persona = None
    if payload.persona is not None:
        persona = Persona(**payload.persona.model_dump())
    return AssemblyOptions(
        webhooks=payload.webhooks,
        knowledge_bases=payload.knowledge_bases,
        transfers=payload.transfers,
        variables=payload.variables,
        features=payload.features,
        global_nodes=payload.global_nodes,
        data_source_url=payload.data_source_url,
        persona=persona,
        model=payload.model,
    )


def create_app(*, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build the API.

    ``transport`` replaces the network layer of the remote client, which lets
    tests serve the pathway service from an :class:`httpx.MockTransport`.
    """

    settings = get_settings()

    app = FastAPI(title="VoicePath API", version="0.1.0", docs_url="/docs")
    app.state.settings = settings
    app.state.assembler = PathwayAssembler()
    app.state.http_client = (
        httpx.AsyncClient(transport=transport, timeout=settings.request_timeout) if transport is not None else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def _close_http_client() -> None:
        if app.state.http_client is not None:
            await app.state.http_client.aclose()

    def get_app_settings(request: Request) -> Settings:
        return request.app.state.settings

    def get_assembler(request: Request) -> PathwayAssembler:
        return request.app.state.assembler

    def get_remote(request: Request) -> Optional[PathwayServiceClient]:
        current: Settings = request.app.state.settings
        if not current.remote_enabled:
            return None
        return PathwayServiceClient(
            current.bland_api_key or "",
            current.bland_base_url,
            timeout=current.request_timeout,
            client=request.app.state.http_client,
        )

    def require_remote(remote: Optional[PathwayServiceClient] = Depends(get_remote)) -> PathwayServiceClient:
        if remote is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Pathway service not configured. Set BLAND_API_KEY.",
            )
        return remote

    async def finish(
        result: AssemblyResult,
        remote: Optional[PathwayServiceClient],
        publish: bool = True,
    ) -> PathwayBuildResult:
        payload = result.to_payload()
        summary = payload.pop("summary")
        if remote is None or not publish:
            return PathwayBuildResult(status="preview", pathway=payload, summary=summary)
        try:
            pathway_id = await remote.publish(result.graph)
        except PathwayServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Pathway service error: {exc}")
        return PathwayBuildResult(status="created", pathway_id=pathway_id, pathway=payload, summary=summary)

    @app.get("/health", summary="Simple health check")
    async def health(current: Settings = Depends(get_app_settings)) -> dict[str, object]:
        return {
            "status": "ok",
            "remote": current.remote_enabled,
            "environment": current.environment,
        }

    @app.post(
        "/pathways",
        response_model=PathwayBuildResult,
        status_code=status.HTTP_201_CREATED,
        summary="Assemble a pathway from a description",
    )
    async def create_pathway(
        payload: PathwayCreate,
        assembler: PathwayAssembler = Depends(get_assembler),
        remote: Optional[PathwayServiceClient] = Depends(get_remote),
    ) -> PathwayBuildResult:
        result = assembler.assemble(payload.name, payload.description, options_from_request(payload))
        return await finish(result, remote, payload.publish)

    @app.post("/pathways/templates/sales", response_model=PathwayBuildResult, status_code=status.HTTP_201_CREATED)
    async def create_sales_pathway(
        payload: SalesTemplate,
        remote: Optional[PathwayServiceClient] = Depends(get_remote),
    ) -> PathwayBuildResult:
        return await finish(build_sales_pathway(payload), remote)

    @app.post("/pathways/templates/support", response_model=PathwayBuildResult, status_code=status.HTTP_201_CREATED)
    async def create_support_pathway(
        payload: SupportTemplate,
        remote: Optional[PathwayServiceClient] = Depends(get_remote),
    ) -> PathwayBuildResult:
        return await finish(build_support_pathway(payload), remote)

    @app.post(
        "/pathways/templates/appointment",
        response_model=PathwayBuildResult,
        status_code=status.HTTP_201_CREATED,
    )
    async def create_appointment_pathway(
        payload: AppointmentTemplate,
        remote: Optional[PathwayServiceClient] = Depends(get_remote),
    ) -> PathwayBuildResult:
        return await finish(build_appointment_pathway(payload), remote)

    @app.post("/pathways/templates/workflow", response_model=PathwayBuildResult, status_code=status.HTTP_201_CREATED)
    async def create_workflow_pathway(
        payload: WorkflowTemplate,
        remote: Optional[PathwayServiceClient] = Depends(get_remote),
    ) -> PathwayBuildResult:
        return await finish(build_workflow_pathway(payload), remote)

    @app.get("/pathways", response_model=PathwayList, summary="List remote pathways")
    async def list_pathways(remote: PathwayServiceClient = Depends(require_remote)) -> PathwayList:
        try:
            items = await remote.list_pathways()
        except PathwayServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Pathway service error: {exc}")
        return PathwayList(pathways=[PathwaySummary.model_validate(item) for item in items])

    @app.get("/pathways/{pathway_id}", summary="Fetch a remote pathway")
    async def get_pathway(
        pathway_id: str,
        remote: PathwayServiceClient = Depends(require_remote),
    ) -> dict[str, Any]:
        try:
            return await remote.get_pathway(pathway_id)
        except PathwayServiceError as exc:
            if exc.status_code == status.HTTP_404_NOT_FOUND:
                raise HTTPException(status_code=404, detail=f"Pathway {pathway_id} not found") from exc
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Pathway service error: {exc}")

    @app.delete("/pathways/{pathway_id}", summary="Delete a remote pathway")
    async def delete_pathway(
        pathway_id: str,
        remote: PathwayServiceClient = Depends(require_remote),
    ) -> dict[str, str]:
        try:
            await remote.delete_pathway(pathway_id)
        except PathwayServiceError as exc:
            if exc.status_code == status.HTTP_404_NOT_FOUND:
                raise HTTPException(status_code=404, detail=f"Pathway {pathway_id} not found") from exc
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Pathway service error: {exc}")
        logger.info("Deleted pathway %s", pathway_id)
        return {"status": "deleted", "pathway_id": pathway_id}

    return app
