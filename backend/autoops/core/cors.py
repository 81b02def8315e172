from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from autoops.core.config import settings


def setup_cors(app: FastAPI) -> None:
    """Attach CORS middleware for the dashboard origins."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
