import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resume_enhancer.application import close_context
from resume_enhancer.core.config import load_settings
from resume_enhancer.routes import ai, history, usage


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_context()


def create_app() -> FastAPI:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Resume Enhancer AI API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ai.router, prefix="/api")
    app.include_router(usage.router, prefix="/api")
    app.include_router(history.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Resume Enhancer AI API",
                "docs": "/docs",
                "health": "/api/usage/stats",
            }
        )

    return app


app = create_app()
