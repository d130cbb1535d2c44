from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from expense_assistant import __version__
from expense_assistant.assistant import ExpenseAssistant
from expense_assistant.config import Settings, get_settings
from expense_assistant.providers.base import AIProvider
from expense_assistant.routes import router


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods are both "not found" for clients
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


def create_app(settings: Settings | None = None, provider: AIProvider | None = None) -> FastAPI:
    """Build the application around an explicit Settings object."""
    settings = settings or get_settings()
    app = FastAPI(title="expense-assistant", version=__version__)
    app.state.settings = settings
    app.state.assistant = ExpenseAssistant(settings, provider=provider)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.include_router(router)

    if not app.state.assistant.is_configured:
        logger.warning("OPENROUTER_API_KEY is not set; AI endpoints will return 500")
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    logger.info("Starting expense-assistant", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
