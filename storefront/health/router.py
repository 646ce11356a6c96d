from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from storefront import config
from storefront.health import service as health_service
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    return {
        "ok": True,
        "env": config.APP_ENV,
        "payment_test_mode": config.PAYMENT_TEST_MODE,
        "rate_limit": rate_limit_health_info(request),
    }

@router.get("/supabase")
def health_supabase():
    return JSONResponse(health_service.health_supabase_info())
