"""Prometheus scrape endpoint.

Serves the text exposition format, e.g.:

  lesson_lock_evaluations_total{reason="drip_locked"} 42.0
  pathway_transitions_total{transition="advance",outcome="ok"} 7.0

Restrict access at the ingress in production; the route itself is open.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
