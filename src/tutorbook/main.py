import logging

from fastapi import FastAPI

from tutorbook.api.routes.availability import router as availability_router
from tutorbook.api.routes.courses import router as courses_router
from tutorbook.api.routes.payments import router as payments_router
from tutorbook.api.routes.webhooks import router as webhooks_router
from tutorbook.config import get_settings
from tutorbook.schemas.system import StatusResponse


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(
        title="Tutorbook",
        version="0.1.0",
        debug=settings.debug,
    )

    app.include_router(availability_router)
    app.include_router(courses_router)
    app.include_router(payments_router)
    app.include_router(webhooks_router)

    @app.get("/api/system/status", response_model=StatusResponse)
    async def system_status() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
