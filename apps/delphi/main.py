import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Environment is loaded by Pydantic Settings (see delphi.core.settings).
from delphi.api import register_routes
from delphi.core.database import init_db
from delphi.core.exceptions import register_exception_handlers
from delphi.core.logging import setup_logging
from delphi.core.settings import settings

# Initialize logging early so all modules inherit the handlers/level
setup_logging(settings.effective_log_level)

app = FastAPI(title="Delphi API", debug=settings.debug)
register_exception_handlers(app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routes(app)

logger = logging.getLogger(__name__)
logger.info("%s API initialized (realtime path %s)", settings.app_name, settings.ws_path)


@app.on_event("startup")
def _ensure_tables_on_startup() -> None:
    """Create missing tables when the schema is not managed by Alembic."""
    if not settings.db_auto_create:
        return
    init_db()
    logger.info("Database tables ensured")
