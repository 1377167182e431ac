"""Remote entity gateway -- typed access to the Productboard REST API.

EntityGateway is the abstract interface every backend implements; the sync
orchestrator, webhook registrar, and backfill driver only talk to it.
ProductboardGateway is the concrete httpx implementation.

Every call is exactly one HTTP round-trip. The gateway never retries: retry
policy lives with the callers (see retry.py). Any non-2xx response, timeout or
transport failure surfaces as RemoteError. A 204 response is an empty success.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from src.product_sync.sync.errors import ProductSyncError, RemoteError
from src.product_sync.sync.schemas import (
    Entity,
    EntityPage,
    FieldDefinition,
    FieldOption,
    FieldValue,
    Product,
    WebhookDescriptor,
    WebhookRegistration,
)

logger = structlog.get_logger(__name__)

# Upper bound on /webhooks pages followed in one listing
MAX_WEBHOOK_PAGES = 50


def _unwrap(body: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope used by most Productboard responses."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _nested_id(record: Any, *path: str) -> str | None:
    """Follow ``path`` through nested dicts and return a non-empty string id."""
    current = record
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    if isinstance(current, str) and current:
        return current
    return None


class EntityGateway(ABC):
    """Abstract interface for hierarchy service operations.

    Methods:
        get_entity: Fetch a Feature by id.
        get_parent_product_id: Resolve the parent Product id from a Feature.
        get_product: Fetch a Product by id.
        get_field_definition: Fetch the target custom field definition.
        set_field_value: Replace the custom field value on a Feature.
        list_entities_page: Fetch one page of Features.
        list_webhook_registrations: List existing webhook subscriptions.
        create_webhook_registration: Create a webhook subscription.
    """

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Entity:
        """Fetch a Feature by id."""
        ...

    def get_parent_product_id(self, entity: Entity) -> str | None:
        """Return the parent Product id, checking direct then nested references."""
        return _nested_id(entity.raw, "product", "id") or _nested_id(
            entity.raw, "parent", "product", "id"
        )

    @abstractmethod
    async def get_product(self, product_id: str) -> Product:
        """Fetch a Product by id."""
        ...

    @abstractmethod
    async def get_field_definition(self, field_id: str) -> FieldDefinition:
        """Fetch a custom field definition, including enumerated options."""
        ...

    @abstractmethod
    async def set_field_value(self, entity_id: str, field_id: str, value: FieldValue) -> None:
        """Replace the field value on an entity (PUT semantics)."""
        ...

    @abstractmethod
    async def list_entities_page(self, page_size: int, cursor: str | None = None) -> EntityPage:
        """Fetch one page of entities starting at ``cursor``."""
        ...

    @abstractmethod
    async def list_webhook_registrations(self) -> list[WebhookRegistration]:
        """List webhook subscriptions."""
        ...

    @abstractmethod
    async def create_webhook_registration(self, descriptor: WebhookDescriptor) -> WebhookRegistration:
        """Create a webhook subscription."""
        ...


class ProductboardGateway(EntityGateway):
    """Productboard REST API gateway.

    Uses httpx.AsyncClient with a bearer token and the v1 API version header.

    Args:
        base_url: API root, e.g. https://api.productboard.com.
        token: Personal access token or service token.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, token: str, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Version": "1",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the configured timeout."""
        return httpx.AsyncClient(headers=self._headers, timeout=self._timeout)

    def _is_own_url(self, url: str) -> bool:
        return url == self._base_url or url.startswith(f"{self._base_url}/")

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            # Absolute links come from response bodies; the token only goes to the API host
            if not self._is_own_url(path_or_url):
                raise ProductSyncError(f"Refusing to follow link outside {self._base_url}: {path_or_url}")
            return path_or_url
        return f"{self._base_url}{path_or_url}"

    async def _request(
        self,
        method: str,
        path_or_url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one request and return the decoded JSON body (None for 204)."""
        url = self._url(path_or_url)
        try:
            async with self._client() as client:
                if method == "GET":
                    response = await client.get(url, params=params)
                elif method == "POST":
                    response = await client.post(url, json=json)
                elif method == "PUT":
                    response = await client.put(url, json=json)
                else:
                    raise ValueError(f"Unsupported method {method}")
        except httpx.TransportError as exc:
            logger.warning("gateway.transport_error", method=method, url=url, error=str(exc))
            raise RemoteError(None, f"{method} {url}: {exc}") from exc

        if response.is_error:
            logger.warning(
                "gateway.request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise RemoteError(response.status_code, f"{method} {url}: {response.text}")

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(response.status_code, f"{method} {url}: invalid JSON body") from exc

    async def get_entity(self, entity_id: str) -> Entity:
        body = _unwrap(await self._request("GET", f"/features/{entity_id}"))
        raw = body if isinstance(body, dict) else {}
        return Entity(id=str(raw.get("id") or entity_id), raw=raw)

    async def get_product(self, product_id: str) -> Product:
        body = _unwrap(await self._request("GET", f"/products/{product_id}"))
        raw = body if isinstance(body, dict) else {}
        name = raw.get("name")
        return Product(
            id=str(raw.get("id") or product_id),
            name=name if isinstance(name, str) else None,
        )

    async def get_field_definition(self, field_id: str) -> FieldDefinition:
        body = _unwrap(await self._request("GET", f"/custom-fields/{field_id}"))
        raw = body if isinstance(body, dict) else {}
        options = [
            FieldOption(id=str(opt["id"]), label=str(opt.get("label") or ""))
            for opt in raw.get("options") or []
            if isinstance(opt, dict) and opt.get("id") is not None
        ]
        return FieldDefinition(id=str(raw.get("id") or field_id), options=options)

    async def set_field_value(self, entity_id: str, field_id: str, value: FieldValue) -> None:
        body = {
            "hierarchyEntity": {"type": "feature", "id": entity_id},
            "customField": {"id": field_id},
            "value": value.to_payload(),
        }
        await self._request("PUT", "/hierarchy-entities/custom-fields-values/value", json=body)
        logger.debug("gateway.field_value_set", entity_id=entity_id, field_id=field_id)

    async def list_entities_page(self, page_size: int, cursor: str | None = None) -> EntityPage:
        if cursor and cursor.startswith(("http://", "https://")):
            body = await self._request("GET", cursor)
        else:
            params: dict[str, Any] = {"pageLimit": page_size}
            if cursor:
                params["pageCursor"] = cursor
            body = await self._request("GET", "/features", params=params)

        raw = body if isinstance(body, dict) else {}
        items = raw.get("data") if isinstance(body, dict) else body
        entities = [
            Entity(id=str(item["id"]), raw=item)
            for item in items or []
            if isinstance(item, dict) and item.get("id")
        ]
        return EntityPage(entities=entities, raw=raw)

    async def list_webhook_registrations(self) -> list[WebhookRegistration]:
        """List every subscription, following ``links.next`` across pages."""
        items: list[Any] = []
        next_url: str | None = "/webhooks"
        seen: set[str] = set()
        while next_url and len(seen) < MAX_WEBHOOK_PAGES:
            seen.add(next_url)
            body = await self._request("GET", next_url)
            page = _unwrap(body)
            if isinstance(page, list):
                items.extend(page)

            links = body.get("links") if isinstance(body, dict) else None
            candidate = links.get("next") if isinstance(links, dict) else None
            if not isinstance(candidate, str) or not candidate or candidate in seen:
                break
            if candidate.startswith(("http://", "https://")) and not self._is_own_url(candidate):
                logger.warning("gateway.webhook_next_link_rejected", url=candidate)
                break
            next_url = candidate

        registrations: list[WebhookRegistration] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            notification = item.get("notification") or {}
            registrations.append(
                WebhookRegistration(
                    id=item.get("id"),
                    url=notification.get("url") if isinstance(notification, dict) else None,
                    enabled=bool(item.get("enabled", True)),
                    event_types=[
                        ev["eventType"]
                        for ev in item.get("events") or []
                        if isinstance(ev, dict) and ev.get("eventType")
                    ],
                )
            )
        return registrations

    async def create_webhook_registration(self, descriptor: WebhookDescriptor) -> WebhookRegistration:
        body = _unwrap(await self._request("POST", "/webhooks", json=descriptor.to_payload()))
        created_id = body.get("id") if isinstance(body, dict) else None
        logger.info("gateway.webhook_created", webhook_id=created_id, url=descriptor.url)
        return WebhookRegistration(
            id=created_id,
            url=descriptor.url,
            enabled=descriptor.enabled,
            event_types=list(descriptor.event_types),
        )
