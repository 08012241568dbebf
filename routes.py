# routes.py
from fastapi import FastAPI
from controller.meshy_controller import meshy_router
from controller.tripo_controller import tripo_router


def register_routes(app: FastAPI) -> None:
    """Register upstream proxy controllers here."""
    app.include_router(tripo_router)
    app.include_router(meshy_router)
