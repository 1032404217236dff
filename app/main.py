# Entry point for the FastAPI app
from fastapi import FastAPI, Request
from api.logging_config import configure_logging, get_logger
from api.settings import settings
from api.routes import backups

configure_logging(
    log_dir=settings.LOG_DIR,
    log_level=settings.LOG_LEVEL,
    debug=settings.DEBUG,
    log_filename=settings.LOG_FILENAME,
)
logger = get_logger(__name__)

app = FastAPI(
    title="Backup Lifecycle Service",
    description="Creates, publishes and rotates project backups, and monitors their freshness across local and remote storage",
    version=settings.IMAGE_TAG
)

# Configure OpenAPI security schemes for Swagger UI
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "X-Admin-Key": {
            "type": "apiKey",
            "in": "header",
            "name": "X-Admin-Key",
            "description": "Admin API Key for backup operations"
        }
    }

    for path, path_item in openapi_schema.get("paths", {}).items():
        if path.startswith("/backups/"):
            for method, operation in path_item.items():
                if method in ["get", "post", "delete", "put", "patch"]:
                    operation["security"] = [{"X-Admin-Key": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

app.include_router(backups.router)
logger.info("Registered backup lifecycle routes (/backups/*)")


# Log requests, if Debug is enabled in env variables.
if settings.DEBUG:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug("Received request: %s %s", request.method, request.url)
        response = await call_next(request)
        logger.debug("Response status: %s", response.status_code)
        return response


# Health check endpoint.
@app.get("/health")
def check_health():
    return {"status": "OK"}

# Get Image version.
@app.get("/version")
def get_version():
    return {"IMAGE_TAG": f"{settings.IMAGE_TAG}"}
