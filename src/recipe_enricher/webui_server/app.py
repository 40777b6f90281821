from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from .. import __version__
from ..config import resolve_notion_database_id
from ..demo_data import demo_payload
from ..errors import ConfigurationError, EnricherError, ImageHostError, InvalidUpdateError, RecordStoreError
from ..image_host import MAX_UPLOAD_BYTES, upload_with_default_host
from ..notifier import EmailNotifier, SmtpSettings
from ..notion_client import NotionRecipeStore, build_properties
from ..orchestrator import EnrichmentMode, build_orchestrator, summarize
from ..page_extractor import is_valid_image_url, probe_image_url
from ..resilience import EnrichmentContext
from .deps import LazyResource, Services, require_services
from .scheduler import SchedulerService
from .schemas import (
    AddImageUrlRequest,
    ApplyChangesRequest,
    EnrichmentPostRequest,
    RecipeUpdates,
    validate_recipe_id,
)
from .settings import WebUISettings, load_webui_settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
_STORE_ERROR_MESSAGES = {
    "object_not_found": (404, "Recipe not found in Notion"),
    "validation_error": (400, "Invalid data provided"),
}


def _error_payload(message: str, details: Any, development: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": message}
    if development and details is not None:
        payload["details"] = details
    return payload


def apply_recipe_updates(store: Any, recipe_id: str, updates: RecipeUpdates) -> list[str]:
    """Write allow-listed updates straight to the page; returns the properties touched."""
    if updates.selectedImage:
        store.set_cover(recipe_id, updates.selectedImage)
    properties = build_properties(
        title=updates.title,
        meal=updates.meal,
        cuisine=updates.cuisine,
        tags=updates.tags,
        key_ingredients=updates.keyIngredients,
    )
    store.update_properties(recipe_id, properties)
    return list(properties)


def build_default_services(settings: Optional[WebUISettings] = None) -> Services:
    settings = settings or load_webui_settings()
    context = EnrichmentContext.from_config()
    store = LazyResource(NotionRecipeStore.from_env)
    services: Services

    def scheduled_run() -> dict[str, Any]:
        return services.orchestrator(with_notifier=True).run_scheduled()

    scheduler = SchedulerService(
        scheduled_run,
        enabled=settings.schedule_enabled,
        day_of_week=settings.schedule_day_of_week,
        hour=settings.schedule_hour,
        minute=settings.schedule_minute,
    )
    services = Services(
        settings=settings,
        context=context,
        store=store,
        notifier_factory=lambda: EmailNotifier(SmtpSettings.from_env()),
        orchestrator_factory=build_orchestrator,
        image_probe=probe_image_url,
        image_uploader=upload_with_default_host,
        scheduler=scheduler,
    )
    return services


def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_default_services()
    settings = services.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.scheduler.start()
        print(f"[start] recipe-enricher listening on http://{settings.bind_host}:{settings.bind_port}", flush=True)
        try:
            yield
        finally:
            services.scheduler.shutdown()
            services.store.close()

    app = FastAPI(title="Recipe Enricher", version=__version__, lifespan=lifespan)
    app.state.services = services

    @app.middleware("http")
    async def cors_middleware(request: Request, call_next):
        if request.method == "OPTIONS":
            response: Response = Response(status_code=200)
        else:
            response = await call_next(request)
        for key, value in CORS_HEADERS.items():
            response.headers[key] = value
        return response

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(InvalidUpdateError)
    async def invalid_update_handler(_request: Request, exc: InvalidUpdateError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_payload(str(exc), None, settings.development))

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error: %s", exc)
        return JSONResponse(
            status_code=500,
            content=_error_payload("Missing required environment variables", str(exc), settings.development),
        )

    @app.exception_handler(RecordStoreError)
    async def record_store_error_handler(_request: Request, exc: RecordStoreError) -> JSONResponse:
        logger.error("Record store error: %s", exc)
        status, message = _STORE_ERROR_MESSAGES.get(exc.code, (500, "Record store request failed"))
        return JSONResponse(status_code=status, content=_error_payload(message, str(exc), settings.development))

    @app.exception_handler(ImageHostError)
    async def image_host_error_handler(_request: Request, exc: ImageHostError) -> JSONResponse:
        logger.error("Image upload failed: %s", exc)
        return JSONResponse(status_code=502, content=_error_payload("Image upload failed", str(exc), settings.development))

    @app.exception_handler(EnricherError)
    async def enricher_error_handler(_request: Request, exc: EnricherError) -> JSONResponse:
        logger.error("Enrichment error: %s", exc)
        return JSONResponse(status_code=500, content=_error_payload("Enrichment failed", str(exc), settings.development))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=_error_payload("Invalid request format", jsonable_encoder(exc.errors()), settings.development),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    # Runs in the outermost error middleware, so the CORS middleware never sees it.
    @app.exception_handler(Exception)
    async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled API error")
        return JSONResponse(
            status_code=500,
            content=_error_payload("Internal server error", str(exc), settings.development),
            headers=CORS_HEADERS,
        )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/health")
    async def health(services: Services = Depends(require_services)) -> dict[str, Any]:
        return {
            "ok": True,
            "version": __version__,
            "breaker": services.context.breaker.snapshot(),
            "nextScheduledRun": services.scheduler.next_run_at(),
        }

    @app.get(f"{API_PREFIX}/enrichment")
    def get_enrichment(
        refresh: str = Query(default="notion"),
        services: Services = Depends(require_services),
    ) -> dict[str, Any]:
        mode = EnrichmentMode.from_refresh(refresh)
        items = services.orchestrator().run_batch(mode)
        return {
            "success": True,
            "data": [item.to_dict() for item in items],
            "stats": summarize(items),
            "mode": mode.value,
        }

    @app.post(f"{API_PREFIX}/enrichment")
    def post_enrichment(
        payload: Optional[dict[str, Any]] = Body(default=None),
        services: Services = Depends(require_services),
    ) -> dict[str, Any]:
        request = EnrichmentPostRequest.model_validate(payload or {})
        if request.action == "updateRecipe":
            try:
                recipe_id = validate_recipe_id(request.recipeId)
            except ValueError as exc:
                raise InvalidUpdateError(str(exc)) from exc
            if not request.updates:
                raise InvalidUpdateError("Invalid request format")
            try:
                updates = RecipeUpdates.model_validate(request.updates)
            except ValidationError as exc:
                raise InvalidUpdateError(f"Invalid update data: {exc.error_count()} error(s)") from exc
            apply_recipe_updates(services.store.get(), recipe_id, updates)
            return {"success": True, "message": "Recipe updated successfully"}

        return services.orchestrator(with_notifier=True).run_scheduled()

    @app.get(f"{API_PREFIX}/test-notion")
    def test_notion(services: Services = Depends(require_services)) -> dict[str, Any]:
        recipes = services.store.get().sample_recipes(page_size=5)
        return {
            "success": True,
            "message": "Notion connection successful!",
            "data": {
                "totalFound": len(recipes),
                "hasToken": True,
                "databaseId": resolve_notion_database_id(),
                "recipes": [recipe.to_dict() for recipe in recipes],
            },
        }

    @app.get(f"{API_PREFIX}/demo-data")
    async def demo_data() -> dict[str, Any]:
        return demo_payload()

    @app.post(f"{API_PREFIX}/apply-changes")
    def apply_changes(
        payload: ApplyChangesRequest,
        services: Services = Depends(require_services),
    ) -> dict[str, Any]:
        store = services.store.get()
        changes = payload.changes
        properties = build_properties(
            title=changes.title,
            meal=changes.meal,
            cuisine=changes.cuisine,
            tags=changes.tags,
            key_ingredients=changes.key_ingredients,
        )
        store.update_properties(payload.recipeId, properties)

        image_added = False
        if changes.image and changes.image.startswith("http"):
            try:
                store.replace_image(payload.recipeId, changes.image)
                image_added = True
            except RecordStoreError as exc:
                logger.warning("Could not replace image on %s: %s", payload.recipeId, exc)

        return {
            "success": True,
            "updated": list(properties),
            "imageAdded": image_added,
            "message": "Changes applied successfully",
        }

    @app.post(f"{API_PREFIX}/add-image-url")
    def add_image_url(
        payload: AddImageUrlRequest,
        services: Services = Depends(require_services),
    ) -> dict[str, Any]:
        if not is_valid_image_url(payload.imageUrl):
            raise InvalidUpdateError("Invalid image URL format")
        if not services.image_probe(payload.imageUrl):
            raise InvalidUpdateError("Image URL is not accessible or not a valid image")
        services.store.get().replace_image(payload.recipeId, payload.imageUrl)
        return {"success": True, "imageUrl": payload.imageUrl, "message": "Image URL added successfully"}

    @app.post(f"{API_PREFIX}/upload-image")
    def upload_image(
        recipeId: str = Form(default=""),
        image: Optional[UploadFile] = File(default=None),
        services: Services = Depends(require_services),
    ) -> dict[str, Any]:
        if image is None:
            raise InvalidUpdateError("No image file provided")
        if not recipeId.strip():
            raise InvalidUpdateError("Recipe ID is required")
        if not (image.content_type or "").startswith("image/"):
            raise InvalidUpdateError("File must be an image")
        content = image.file.read(MAX_UPLOAD_BYTES + 1)
        if len(content) > MAX_UPLOAD_BYTES:
            raise InvalidUpdateError("Image must be 5 MB or smaller")
        if not content:
            raise InvalidUpdateError("No image file provided")

        image_url = services.image_uploader(content, image.filename or "image")
        services.store.get().replace_image(recipeId.strip(), image_url)
        return {"success": True, "imageUrl": image_url, "message": "Image uploaded successfully"}

    return app
