import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solvesync.config import get_settings
from solvesync.routes.dashboard import APP_VERSION
from solvesync.routes.dashboard import router as dashboard_router
from solvesync.routes.events import router as events_router
from solvesync.routes.handshake import router as handshake_router
from solvesync.routes.timer import router as timer_router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if settings.debug_mode:
        logging.getLogger("solvesync").setLevel(logging.DEBUG)

    application = FastAPI(
        title="SolveSync API",
        version=APP_VERSION,
        description="Track coding-problem sessions and sync accepted solutions to the backend and GitHub.",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(events_router)
    application.include_router(timer_router)
    application.include_router(handshake_router)
    application.include_router(dashboard_router)

    return application


app = create_app()
