import logging

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import config
from .api import analytics as analytics_api
from .api import applications as applications_api
from .api import auth as auth_api
from .api import candidates as candidates_api
from .api import job as job_api
from .api import users as users_api
from .database import build_engine, build_session_factory, init_db
from .utils.error_handlers import register_exception_handlers

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

_default_origins = ["http://localhost:5173", "http://127.0.0.1:5173"]


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    root = logging.getLogger()
    # Leave logging alone when uvicorn or pytest already installed handlers.
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        root.setLevel(level)


def _api_router() -> APIRouter:
    api = APIRouter()
    api.include_router(auth_api.router)
    api.include_router(users_api.router)
    api.include_router(job_api.router)
    api.include_router(applications_api.router)
    api.include_router(candidates_api.router)
    api.include_router(analytics_api.router)

    @api.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "Backend running", "service": "Job Board API"}

    @api.get("/db/health")
    def db_health(request: Request):
        state = request.app.state
        if state.db_init_error:
            raise HTTPException(status_code=503, detail=f"DB init failed: {state.db_init_error}")
        try:
            with state.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("DB health check failed: %s", e)
            raise HTTPException(status_code=503, detail="DB connection failed")
        return {"status": "ok"}

    return api


def create_app(database_url: str | None = None) -> FastAPI:
    """
    Build the application with its own engine and session factory.

    Tests pass a throwaway `database_url`; otherwise DATABASE_URL is used.
    """
    configure_logging()

    app = FastAPI(title="Job Board API")

    engine = build_engine(database_url or config.DATABASE_URL)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.db_init_error = None
    try:
        init_db(engine)
    except SQLAlchemyError as e:
        logger.exception("Database initialisation failed: %s", e)
        app.state.db_init_error = str(e)
    else:
        logger.info("Database ready (%s)", engine.dialect.name)

    register_exception_handlers(app)
    app.include_router(_api_router(), prefix=config.API_PREFIX)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[*_default_origins, *config.FRONTEND_ORIGINS],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
