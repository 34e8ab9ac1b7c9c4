"""FastAPI application serving analytics aggregates."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessment.config import LOG_LEVEL
from assessment.routes import analytics

CONSOLE_HANDLER_NAME = "assessment-console"


def configure_logging(level: int = LOG_LEVEL) -> logging.Logger:
    """
    Attach one console handler to the ``assessment`` logger.

    Safe to call again (e.g. on reload); only the level is updated then.
    """
    logger = logging.getLogger("assessment")
    logger.setLevel(level)
    if not any(h.get_name() == CONSOLE_HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(CONSOLE_HANDLER_NAME)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
            )
        )
        logger.addHandler(handler)
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
    return logger


configure_logging()

app = FastAPI(title="Assessment Analytics API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analytics.router)
