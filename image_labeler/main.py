import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from image_labeler import __version__
from image_labeler.api import drive_router, labels_router, oauth_router
from image_labeler.config import get_settings
from image_labeler.errors import LabelerError, labeler_error_handler, validation_error_handler
from image_labeler.middleware import TokenContextMiddleware
from image_labeler.models.schemas import HealthResponse
from image_labeler.rubric import CRITERIA

load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Image Labeler",
    version=__version__
)

app.add_middleware(TokenContextMiddleware)

# CORS is added last so it wraps the token middleware and 401s carry CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(LabelerError, labeler_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

app.include_router(oauth_router)
app.include_router(drive_router)
app.include_router(labels_router)

if not settings.oauth_configured():
    logger.warning("Google OAuth is not configured; /api/oauth2/login will return 503")


@app.get("/health", response_model=HealthResponse)
def health_check():
    return HealthResponse(oauth_configured=settings.oauth_configured())


@app.get("/auth/config")
def auth_config():
    """
    Return OAuth configuration and the scoring rubric for the frontend.
    """
    return {
        "enabled": settings.oauth_configured(),
        "provider": "google",
        "google": {
            "client_id": settings.GOOGLE_OAUTH_CLIENT_ID or "",
            "scopes": settings.SCOPES,
            "login_url": "/api/oauth2/login"
        },
        "criteria": [
            {"name": c.name, "column": c.column, "description": c.description}
            for c in CRITERIA
        ]
    }


@app.get("/")
def root():
    return {
        "service": "image-labeler",
        "version": __version__,
        "login_url": "/api/oauth2/login"
    }
