import dataclasses
from pathlib import Path

from fastapi.testclient import TestClient

from recipe_enricher.errors import ConfigurationError, ImageHostError, RecordStoreError
from recipe_enricher.image_host import MAX_UPLOAD_BYTES
from recipe_enricher.models import ClassificationResult, ExtractedImage, ExtractedPageData, RecipeRecord
from recipe_enricher.orchestrator import EnrichmentOrchestrator
from recipe_enricher.resilience import EnrichmentContext
from recipe_enricher.webui_server.app import create_app
from recipe_enricher.webui_server.deps import LazyResource, Services
from recipe_enricher.webui_server.scheduler import SchedulerService
from recipe_enricher.webui_server.settings import WebUISettings

RECIPE_ID = "1a2b3c4d-0000-1111-2222-333344445555"


class _FakeStore:
    def __init__(self, replace_error: Exception | None = None, update_error: Exception | None = None):
        self.replace_error = replace_error
        self.update_error = update_error
        self.updates = []
        self.covers = []
        self.images = []
        self.closed = False
        self.recipes = [
            RecipeRecord(id=RECIPE_ID, title="Spicy Chicken Curry", link="https://example.com/curry"),
            RecipeRecord(id="recipe-0002", title="Lemon Tart", link="https://example.com/tart", meal="Dessert"),
        ]

    def query_incomplete_recipes(self, page_size: int = 5):
        return list(self.recipes)

    def sample_recipes(self, page_size: int = 5):
        return list(self.recipes)

    def update_properties(self, page_id, properties):
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((page_id, properties))

    def set_cover(self, page_id, image_url):
        self.covers.append((page_id, image_url))

    def replace_image(self, page_id, image_url):
        if self.replace_error is not None:
            raise self.replace_error
        self.images.append((page_id, image_url))
        return 0

    def close(self):
        self.closed = True


class _FakeExtractor:
    def extract(self, url):
        return ExtractedPageData(url=url, title="Extracted", images=[ExtractedImage(url=f"{url}/hero.jpg")])


class _FakeClassifier:
    def __init__(self):
        self.refresh_flags = []

    def classify(self, recipe, extracted=None, *, refresh=False):
        self.refresh_flags.append(refresh)
        return ClassificationResult(meal="Main Dish", cuisine="Indian", confidence=0.9, source="ai")


class _FakeNotifier:
    def __init__(self):
        self.reviews = []

    def send_review(self, items, stats):
        self.reviews.append((items, stats))
        return True

    def send_error(self, error):
        return True


def _settings(development: bool = False) -> WebUISettings:
    return WebUISettings(
        bind_host="127.0.0.1",
        bind_port=3000,
        logs_dir=Path("logs"),
        development=development,
        schedule_enabled=False,
        schedule_day_of_week="mon",
        schedule_hour=9,
        schedule_minute=0,
    )


def _services(
    store=None,
    *,
    store_factory=None,
    probe=None,
    uploader=None,
    notifier=None,
    classifier=None,
    development=False,
):
    store = store if store is not None else _FakeStore()
    classifier = classifier or _FakeClassifier()

    def orchestrator_factory(store_obj, context, notifier=None):
        return EnrichmentOrchestrator(
            store_obj,
            _FakeExtractor(),
            classifier,
            context,
            notifier=notifier,
            batch_size=5,
            delay_seconds=0,
            max_workers=1,
        )

    return Services(
        settings=_settings(development),
        context=EnrichmentContext(),
        store=LazyResource(store_factory or (lambda: store)),
        notifier_factory=lambda: notifier,
        orchestrator_factory=orchestrator_factory,
        image_probe=probe or (lambda url: True),
        image_uploader=uploader or (lambda content, filename: f"https://i.ibb.co/hosted/{filename}"),
        scheduler=SchedulerService(lambda: None, enabled=False),
    )


def _missing_token():
    raise ConfigurationError("Missing NOTION_TOKEN environment variable")


def test_options_preflight_returns_cors_headers():
    with TestClient(create_app(_services())) as client:
        response = client.options("/api/enrichment")

    assert response.status_code == 200
    assert response.text == ""
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def test_health_reports_breaker_and_schedule():
    with TestClient(create_app(_services())) as client:
        response = client.get("/api/health")

    payload = response.json()
    assert response.status_code == 200
    assert payload["ok"] is True
    assert payload["breaker"]["failures"] == 0
    assert payload["nextScheduledRun"] is None


def test_get_enrichment_returns_review_items():
    classifier = _FakeClassifier()
    with TestClient(create_app(_services(classifier=classifier))) as client:
        response = client.get("/api/enrichment", params={"refresh": "ai"})

    payload = response.json()
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert payload["success"] is True
    assert payload["mode"] == "reclassify"
    assert [item["recipe"]["id"] for item in payload["data"]] == [RECIPE_ID, "recipe-0002"]
    assert payload["data"][1]["suggestedChanges"].get("meal") is None
    assert payload["stats"]["totalRecipes"] == 2
    assert payload["stats"]["imagesFound"] == 2
    assert classifier.refresh_flags == [True, True]


def test_get_enrichment_without_token_is_a_server_error():
    with TestClient(create_app(_services(store_factory=_missing_token))) as client:
        response = client.get("/api/enrichment")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Missing required environment variables"}


def test_error_details_only_in_development():
    with TestClient(create_app(_services(store_factory=_missing_token, development=True))) as client:
        response = client.get("/api/enrichment")

    assert response.status_code == 500
    assert "NOTION_TOKEN" in response.json()["details"]


def test_update_recipe_rejects_short_id():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/enrichment",
            json={"action": "updateRecipe", "recipeId": "short", "updates": {"meal": "Dessert"}},
        )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid recipe ID"}
    assert store.updates == []


def test_update_recipe_requires_updates():
    with TestClient(create_app(_services())) as client:
        response = client.post("/api/enrichment", json={"action": "updateRecipe", "recipeId": RECIPE_ID})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request format"


def test_update_recipe_writes_allow_listed_fields():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/enrichment",
            json={
                "action": "updateRecipe",
                "recipeId": RECIPE_ID,
                "updates": {
                    "meal": "  Dessert ",
                    "tags": ["Sweet", " Baked "],
                    "selectedImage": "https://example.com/tart.jpg",
                    "owner": "someone-else",
                },
            },
        )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Recipe updated successfully"}
    assert store.covers == [(RECIPE_ID, "https://example.com/tart.jpg")]
    assert store.updates == [
        (
            RECIPE_ID,
            {
                "Meal": {"select": {"name": "Dessert"}},
                "Tags": {"multi_select": [{"name": "Sweet"}, {"name": "Baked"}]},
            },
        )
    ]


def test_update_recipe_not_found_maps_to_404():
    store = _FakeStore(update_error=RecordStoreError("gone", status_code=404, code="object_not_found"))
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/enrichment",
            json={"action": "updateRecipe", "recipeId": RECIPE_ID, "updates": {"meal": "Dessert"}},
        )

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Recipe not found in Notion"}


def test_post_without_action_runs_scheduled_pass():
    notifier = _FakeNotifier()
    with TestClient(create_app(_services(notifier=notifier))) as client:
        response = client.post("/api/enrichment")

    assert response.status_code == 200
    assert response.json() == {"success": True, "processed": 2, "total": 2}
    assert len(notifier.reviews) == 1


def test_test_notion_lists_sample_recipes(monkeypatch):
    monkeypatch.setenv("NOTION_DATABASE_ID", "db-123")
    with TestClient(create_app(_services())) as client:
        response = client.get("/api/test-notion")

    payload = response.json()
    assert payload["success"] is True
    assert payload["data"]["totalFound"] == 2
    assert payload["data"]["databaseId"] == "db-123"
    assert payload["data"]["recipes"][0]["name"] == "Spicy Chicken Curry"


def test_demo_data_needs_no_credentials():
    with TestClient(create_app(_services(store_factory=_missing_token))) as client:
        response = client.get("/api/demo-data")

    payload = response.json()
    assert response.status_code == 200
    assert [item["recipe"]["id"] for item in payload["data"]] == ["demo-1", "demo-2", "demo-3"]
    assert payload["stats"]["totalRecipes"] == 3
    assert payload["data"][1]["suggestedChanges"]["title"]["suggested"] == "Chicken 65"


def test_apply_changes_writes_properties_and_image():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/apply-changes",
            json={
                "recipeId": RECIPE_ID,
                "changes": {
                    "meal": "Not Set",
                    "cuisine": "Thai",
                    "tags": ["Spicy"],
                    "image": "https://example.com/curry.jpg",
                },
            },
        )

    payload = response.json()
    assert response.status_code == 200
    assert payload["updated"] == ["Cuisine", "Tags"]
    assert payload["imageAdded"] is True
    assert store.images == [(RECIPE_ID, "https://example.com/curry.jpg")]


def test_apply_changes_survives_image_failure():
    store = _FakeStore(replace_error=RecordStoreError("blocks unavailable", status_code=502))
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/apply-changes",
            json={"recipeId": RECIPE_ID, "changes": {"meal": "Dessert", "image": "https://example.com/x.jpg"}},
        )

    payload = response.json()
    assert response.status_code == 200
    assert payload["imageAdded"] is False
    assert store.updates == [(RECIPE_ID, {"Meal": {"select": {"name": "Dessert"}}})]


def test_apply_changes_rejects_missing_recipe_id():
    with TestClient(create_app(_services())) as client:
        response = client.post("/api/apply-changes", json={"changes": {"meal": "Dessert"}})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request format"


def test_add_image_url_validates_format():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post("/api/add-image-url", json={"recipeId": RECIPE_ID, "imageUrl": "not-a-url"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid image URL format"
    assert store.images == []


def test_add_image_url_requires_reachable_image():
    store = _FakeStore()
    probed = []

    def probe(url):
        probed.append(url)
        return False

    with TestClient(create_app(_services(store, probe=probe))) as client:
        response = client.post(
            "/api/add-image-url",
            json={"recipeId": RECIPE_ID, "imageUrl": "https://example.com/missing.jpg"},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "Image URL is not accessible or not a valid image"
    assert probed == ["https://example.com/missing.jpg"]


def test_add_image_url_replaces_page_image():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/add-image-url",
            json={"recipeId": RECIPE_ID, "imageUrl": "https://example.com/new.jpg"},
        )

    assert response.status_code == 200
    assert response.json()["imageUrl"] == "https://example.com/new.jpg"
    assert store.images == [(RECIPE_ID, "https://example.com/new.jpg")]


def test_upload_image_hosts_file_and_replaces_page_image():
    store = _FakeStore()
    uploads = []

    def uploader(content, filename):
        uploads.append((content, filename))
        return "https://i.ibb.co/abc/dish.jpg"

    with TestClient(create_app(_services(store, uploader=uploader))) as client:
        response = client.post(
            "/api/upload-image",
            data={"recipeId": RECIPE_ID},
            files={"image": ("dish.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")},
        )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "imageUrl": "https://i.ibb.co/abc/dish.jpg",
        "message": "Image uploaded successfully",
    }
    assert uploads == [(b"\xff\xd8\xff\xe0fake-jpeg", "dish.jpg")]
    assert store.images == [(RECIPE_ID, "https://i.ibb.co/abc/dish.jpg")]


def test_upload_image_rejects_non_image_file():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/upload-image",
            data={"recipeId": RECIPE_ID},
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "File must be an image"
    assert store.images == []


def test_upload_image_enforces_size_limit():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        response = client.post(
            "/api/upload-image",
            data={"recipeId": RECIPE_ID},
            files={"image": ("huge.png", b"x" * (MAX_UPLOAD_BYTES + 1), "image/png")},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "Image must be 5 MB or smaller"
    assert store.images == []


def test_upload_image_requires_file_and_recipe_id():
    with TestClient(create_app(_services())) as client:
        no_file = client.post("/api/upload-image", data={"recipeId": RECIPE_ID})
        no_id = client.post(
            "/api/upload-image",
            files={"image": ("dish.jpg", b"\xff\xd8", "image/jpeg")},
        )

    assert no_file.status_code == 400
    assert no_file.json()["error"] == "No image file provided"
    assert no_id.status_code == 400
    assert no_id.json()["error"] == "Recipe ID is required"


def test_upload_image_host_failure_is_bad_gateway():
    def uploader(content, filename):
        raise ImageHostError("Image host rejected the upload")

    store = _FakeStore()
    with TestClient(create_app(_services(store, uploader=uploader))) as client:
        response = client.post(
            "/api/upload-image",
            data={"recipeId": RECIPE_ID},
            files={"image": ("dish.jpg", b"\xff\xd8", "image/jpeg")},
        )

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Image upload failed"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert store.images == []


def test_unhandled_errors_keep_cors_headers():
    def broken_factory(store_obj, context, notifier=None):
        raise RuntimeError("orchestrator exploded")

    services = dataclasses.replace(_services(), orchestrator_factory=broken_factory)
    with TestClient(create_app(services), raise_server_exceptions=False) as client:
        response = client.get("/api/enrichment")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"


def test_lifespan_closes_store():
    store = _FakeStore()
    with TestClient(create_app(_services(store))) as client:
        client.get("/api/enrichment")

    assert store.closed


def test_unknown_route_uses_error_envelope():
    with TestClient(create_app(_services())) as client:
        response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}
