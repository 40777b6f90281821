"""Thin requests-based client for the Notion recipe database."""
from __future__ import annotations

import logging
import random
import time
from typing import Any, Optional

import requests

from .config import env_or_config, resolve_notion_database_id, resolve_notion_token
from .errors import RecordStoreError
from .models import RecipeRecord

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"

PROP_NAME = "Name"
PROP_LINK = "Link"
PROP_MEAL = "Meal"
PROP_CUISINE = "Cuisine"
PROP_TAGS = "Tags"
PROP_KEY_INGREDIENTS = "Key Ingredients"

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _select_name(prop: Optional[dict[str, Any]]) -> Optional[str]:
    select = (prop or {}).get("select") or {}
    return select.get("name") or None


def _multi_select_names(prop: Optional[dict[str, Any]]) -> list[str]:
    return [item.get("name") for item in (prop or {}).get("multi_select") or [] if item.get("name")]


def _plain_title(prop: Optional[dict[str, Any]]) -> str:
    parts = (prop or {}).get("title") or []
    return "".join(str(part.get("plain_text") or "") for part in parts).strip()


def parse_recipe_page(page: dict[str, Any]) -> RecipeRecord:
    """Map a Notion page object onto a ``RecipeRecord``."""
    props = page.get("properties") or {}
    return RecipeRecord(
        id=str(page.get("id") or ""),
        title=_plain_title(props.get(PROP_NAME)),
        link=(props.get(PROP_LINK) or {}).get("url") or None,
        page_url=page.get("url") or None,
        meal=_select_name(props.get(PROP_MEAL)),
        cuisine=_select_name(props.get(PROP_CUISINE)),
        tags=_multi_select_names(props.get(PROP_TAGS)),
        key_ingredients=_multi_select_names(props.get(PROP_KEY_INGREDIENTS)),
    )


def incomplete_filter() -> dict[str, Any]:
    return {
        "or": [
            {"property": PROP_MEAL, "select": {"is_empty": True}},
            {"property": PROP_CUISINE, "select": {"is_empty": True}},
            {"property": PROP_KEY_INGREDIENTS, "multi_select": {"is_empty": True}},
            {"property": PROP_TAGS, "multi_select": {"is_empty": True}},
        ]
    }


def build_properties(
    *,
    title: Optional[str] = None,
    meal: Optional[str] = None,
    cuisine: Optional[str] = None,
    tags: Optional[list[str]] = None,
    key_ingredients: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Notion property payload for the non-empty arguments."""
    properties: dict[str, Any] = {}
    if title and title.strip():
        properties[PROP_NAME] = {"title": [{"text": {"content": title.strip()}}]}
    if meal and meal.strip():
        properties[PROP_MEAL] = {"select": {"name": meal.strip()}}
    if cuisine and cuisine.strip():
        properties[PROP_CUISINE] = {"select": {"name": cuisine.strip()}}
    if tags:
        names = [tag.strip() for tag in tags if tag and tag.strip()]
        if names:
            properties[PROP_TAGS] = {"multi_select": [{"name": name} for name in names]}
    if key_ingredients:
        names = [item.strip() for item in key_ingredients if item and item.strip()]
        if names:
            properties[PROP_KEY_INGREDIENTS] = {"multi_select": [{"name": name} for name in names]}
    return properties


class NotionRecipeStore:
    def __init__(
        self,
        token: str,
        database_id: str,
        *,
        notion_version: str = DEFAULT_NOTION_VERSION,
        timeout_seconds: float = 30,
        retries: int = 3,
        backoff_seconds: float = 0.4,
        session: Optional[requests.Session] = None,
    ):
        self.database_id = database_id
        self.timeout_seconds = timeout_seconds
        self.retries = max(1, int(retries))
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_env(cls) -> "NotionRecipeStore":
        return cls(
            token=resolve_notion_token(required=True),
            database_id=resolve_notion_database_id(required=True),
            notion_version=str(env_or_config("NOTION_VERSION", "notion.version", DEFAULT_NOTION_VERSION)),
        )

    def close(self) -> None:
        self.session.close()

    def request_json(self, method: str, path: str, *, json: Any = None, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{NOTION_API_URL}/{path.lstrip('/')}"
        for attempt in range(self.retries):
            try:
                response = self.session.request(method, url, json=json, params=params, timeout=self.timeout_seconds)
            except requests.RequestException as exc:
                if attempt >= self.retries - 1:
                    raise RecordStoreError(f"Notion request failed: {exc}") from exc
                logger.debug("Notion %s %s failed (%s); retrying", method, path, exc)
            else:
                if response.status_code in _RETRYABLE_STATUS and attempt < self.retries - 1:
                    logger.debug("Notion %s %s returned %s; retrying", method, path, response.status_code)
                elif not response.ok:
                    raise self._error_from_response(response)
                else:
                    return response.json() if response.content else {}
            time.sleep((self.backoff_seconds * (2**attempt)) + random.uniform(0, 0.25))
        raise RecordStoreError(f"Notion {method} {path} exhausted retries")  # pragma: no cover

    @staticmethod
    def _error_from_response(response: requests.Response) -> RecordStoreError:
        code = ""
        message = f"Notion API error: {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = str(body.get("code") or "")
            if body.get("message"):
                message = f"{message} {body['message']}"
        return RecordStoreError(message, status_code=response.status_code, code=code)

    # ------------------------------------------------------------------
    # Database and pages
    # ------------------------------------------------------------------

    def query_database(self, *, page_size: int, filter: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        body: dict[str, Any] = {"page_size": page_size}
        if filter is not None:
            body["filter"] = filter
        payload = self.request_json("POST", f"databases/{self.database_id}/query", json=body)
        return list(payload.get("results") or [])

    def query_incomplete_recipes(self, page_size: int = 5) -> list[RecipeRecord]:
        """Recipes with at least one empty classification field."""
        pages = self.query_database(page_size=page_size, filter=incomplete_filter())
        recipes = [parse_recipe_page(page) for page in pages]
        logger.info("Found %d recipes needing enrichment", len(recipes))
        return recipes

    def sample_recipes(self, page_size: int = 5) -> list[RecipeRecord]:
        return [parse_recipe_page(page) for page in self.query_database(page_size=page_size)]

    def update_properties(self, page_id: str, properties: dict[str, Any]) -> None:
        if not properties:
            return
        self.request_json("PATCH", f"pages/{page_id}", json={"properties": properties})

    def set_cover(self, page_id: str, image_url: str) -> None:
        self.request_json("PATCH", f"pages/{page_id}", json={"cover": {"type": "external", "external": {"url": image_url}}})

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def list_child_blocks(self, page_id: str, page_size: int = 20) -> list[dict[str, Any]]:
        payload = self.request_json("GET", f"blocks/{page_id}/children", params={"page_size": page_size})
        return list(payload.get("results") or [])

    def delete_block(self, block_id: str) -> None:
        self.request_json("DELETE", f"blocks/{block_id}")

    def append_image_block(self, page_id: str, image_url: str) -> None:
        block = {"object": "block", "type": "image", "image": {"type": "external", "external": {"url": image_url}}}
        self.request_json("PATCH", f"blocks/{page_id}/children", json={"children": [block]})

    def replace_image(self, page_id: str, image_url: str) -> int:
        """Delete the page's image blocks and append one pointing at *image_url*.

        Returns the number of blocks removed.
        """
        removed = 0
        for block in self.list_child_blocks(page_id):
            if block.get("type") == "image" and block.get("id"):
                self.delete_block(str(block["id"]))
                removed += 1
        self.append_image_block(page_id, image_url)
        return removed
