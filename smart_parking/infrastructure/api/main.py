from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from smart_parking.config.settings_env import settings
from smart_parking.domain.errors import ParkingError
from smart_parking.infrastructure.api.errors import parking_error_handler
from smart_parking.infrastructure.api.routers import facilities, reservations, sessions, subscriptions
from smart_parking.infrastructure.persistence.database import init_db


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db()
        yield

    app = FastAPI(title="Smart Parking API", version="0.1.0", lifespan=lifespan)

    app.include_router(facilities.router)
    app.include_router(reservations.router)
    app.include_router(subscriptions.router)
    app.include_router(sessions.router)

    app.add_exception_handler(ParkingError, parking_error_handler)

    @app.get("/health")
    async def health():
        return {"status": "ok", "currency": settings.CURRENCY}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "smart_parking.infrastructure.api.main:app",
        host=settings.FASTAPI_HOST,
        port=settings.FASTAPI_PORT,
        reload=settings.DEV_MODE,
    )
