import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scene_montage.config import Settings
from scene_montage.orchestrator import JobOrchestrator, build_orchestrator
from scene_montage.routers.assembly import router

# --------------------------------------------------------------------------
# --- Application factory ---
# --------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[JobOrchestrator] = None) -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    settings = settings or Settings()
    app = FastAPI(
        title="Scene Montage",
        description="Assembles narrated image scenes, music and subtitles into a single video.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # Every malformed job description answers 400, whichever layer catches it.
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.get("/health")
    def health():
        return {"status": "🚀 Scene montage is running!"}

    app.include_router(router)
    return app
