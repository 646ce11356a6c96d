"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Journalise l'état du mode test paiement (jamais actif en production).
- À l'arrêt: oublie les clients Supabase/Razorpay mémorisés.
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront import config
from storefront.infra.supabase_client import reset_clients
from storefront.payments.razorpay_client import reset_razorpay_client

logger = logging.getLogger("uvicorn.error")

def _log_payment_mode() -> None:
    if config.PAYMENT_TEST_MODE_REQUESTED and config.IS_PRODUCTION:
        logger.warning("PAYMENT_TEST_MODE requested in production: ignored, signatures are enforced")
    elif config.PAYMENT_TEST_MODE:
        logger.warning("PAYMENT_TEST_MODE active: payments are auto-approved without gateway verification")
    elif not (config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET):
        logger.warning("Razorpay keys missing: online payment initiation will fail")

async def _init_rate_limiter(app: FastAPI) -> None:
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # tests only
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
        else:
            app.state.rate_limit_enabled = False
            logger.warning(f"Rate limiting disabled due to init error: {e}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    _log_payment_mode()
    await _init_rate_limiter(app)
    try:
        yield
    finally:
        if app.state.rate_limit_enabled and FastAPILimiter.redis is not None:
            await FastAPILimiter.close()
        reset_razorpay_client()
        reset_clients()
