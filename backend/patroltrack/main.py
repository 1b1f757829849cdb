"""
Point d'entrée principal de l'API PatrolTrack.
Démarrage : uvicorn patroltrack.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import patroltrack.models  # noqa: F401 (enregistre tous les modèles dans Base.metadata avant les routers)
from patroltrack.config import settings
from patroltrack.database import dispose_engine, init_db
from patroltrack.exceptions import StoreUnavailableError
from patroltrack.routers import catalog, guards, sync

logger = logging.getLogger(__name__)
logging.getLogger("patroltrack").setLevel(settings.LOG_LEVEL)

RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie : ouvre le store au démarrage, libère le pool de connexions à l'arrêt."""
    if settings.CREATE_SCHEMA_ON_STARTUP:
        init_db()
        logger.info("Schéma de base de données vérifié/créé.")
    yield
    dispose_engine()
    logger.info("Connexions base de données fermées.")


app = FastAPI(
    title="PatrolTrack API",
    description="API de suivi des rondes de vigiles (offline-first, scans idempotents)",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Capability-Token"],
)


app.include_router(sync.router)
app.include_router(guards.router)
app.include_router(catalog.router)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """
    Erreur d'infrastructure (timeout, verrou, connexion) : 503 + Retry-After.
    Les scans déjà commités avant l'erreur sont renvoyés pour information ;
    l'appareil les retrouvera de toute façon comme DUPLICATE au prochain envoi.
    """
    logger.warning("Store indisponible sur %s : %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "applied_uuids": exc.applied_uuids},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "PatrolTrack API", "version": "0.1.0"}
