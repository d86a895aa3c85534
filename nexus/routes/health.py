# nexus/routes/health.py
"""
Health check endpoints.
"""

from fastapi import APIRouter, Request

from nexus.config import settings

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "nexus-triage"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check: pipeline assembled and collaborators configured.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    checks = {
        "pipeline": {"ok": pipeline is not None},
        "gateway": {
            "ok": bool(settings.EVOLUTION_API_URL and settings.EVOLUTION_API_KEY),
            "host": settings.gateway_host(),
            "instances": settings.instances(),
        },
        "model": {
            "ok": bool(
                settings.OPENAI_API_KEY
                if settings.AI_PROVIDER == "openai"
                else settings.GEMINI_API_KEY
            ),
            "provider": settings.AI_PROVIDER,
        },
    }
    overall_ok = all(check["ok"] for check in checks.values())
    return {"overall_ok": overall_ok, "checks": checks}
