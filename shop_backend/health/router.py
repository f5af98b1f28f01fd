from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from shop_backend.health import service as health_service
from shop_backend.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/dependencies")
def health_dependencies(request: Request):
    return JSONResponse({
        "supabase": health_service.health_supabase_info(),
        "gateway": health_service.health_gateway_info(),
        "rate_limit": rate_limit_health_info(request),
    })
