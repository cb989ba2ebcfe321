"""FastAPI application exposing the stock console (datasets, exports, dashboard)."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api import auth as auth_router
from backend.api import console as console_router
from backend.settings import Settings


def _load_allowed_origins() -> list[str]:
    raw_origins = os.getenv("CORS_ALLOWED_ORIGINS")
    if not raw_origins:
        # Vite/React dev server par défaut
        return [
            "http://localhost:5173",
            "http://localhost:5174",
            "http://localhost:3000",
        ]

    parsed: list[str] = []
    for entry in raw_origins.split(","):
        cleaned = entry.strip()
        if cleaned:
            parsed.append(cleaned)
    return parsed or ["http://localhost:5173"]


@lru_cache
def create_app() -> FastAPI:
    """Construit l'application FastAPI ainsi que les routeurs de la console."""

    app = FastAPI(
        title="Stock Console API",
        version="1.0.0",
        description="""
## Console de gestion de stock

Cette API sert de façade au service de stock distant:
- **Jeux de données** : mouvements, produits, stocks, utilisateurs (admin)
- **Requêtes** : recherche, filtres, plage de dates, tri et pagination
- **Exports** : PDF/XLSX générés par le service, CSV rendu localement
- **Dashboard** : métriques et derniers mouvements

### Authentification
L'API utilise OAuth2 avec JWT tokens. Obtenez un token via `/auth/token`;
le credential du service de stock voyage dans ce token.
        """,
        openapi_tags=[
            {"name": "auth", "description": "Authentification et gestion des tokens"},
            {"name": "console", "description": "Jeux de données, exports et dashboard"},
        ],
        docs_url="/docs",
        redoc_url="/redoc",
    )

    settings = Settings.load()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    allowed_origins = settings.cors_allowed_origins or _load_allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)
    app.include_router(console_router.router)

    @app.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
