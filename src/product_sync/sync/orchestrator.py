"""Per-entity sync workflow: feature -> parent product -> field value -> write.

Each sync recomputes the value from current remote state and always writes
it (no comparison against the previous value), so repeated or concurrent
deliveries for the same feature converge on last-writer-wins.

Failure policy:
- No parent product, or a product without a name: skip, no write, not an error
- No enumerated option matching the product name: error, logged, no write
- Transient remote errors (429, 5xx, transport): retried with backoff
- Anything else: logged and reported as the entity's outcome

sync_entity() never raises, so one failing feature cannot abort its batch.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog
from tenacity.wait import wait_base

from src.product_sync.core.monitoring import entity_syncs_total
from src.product_sync.sync.errors import NoMatchingOption, RemoteError
from src.product_sync.sync.gateway import EntityGateway
from src.product_sync.sync.resolver import FieldValueResolver
from src.product_sync.sync.retry import call_with_retry
from src.product_sync.sync.schemas import FieldDefinition, FieldMode, SyncOutcome, SyncResult

logger = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Keeps the product-name field of features in line with their parent product.

    Args:
        gateway: Remote entity gateway.
        field_id: Target custom field id.
        field_mode: Text or enumerated field.
        resolver: Field value resolver (defaults to a new FieldValueResolver).
        retry_attempts: Attempts per remote call for transient failures.
        retry_wait: Optional tenacity wait strategy (exponential by default).
    """

    def __init__(
        self,
        gateway: EntityGateway,
        field_id: str,
        field_mode: FieldMode,
        resolver: FieldValueResolver | None = None,
        retry_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ) -> None:
        self._gateway = gateway
        self._field_id = field_id
        self._field_mode = field_mode
        self._resolver = resolver or FieldValueResolver()
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait

    @property
    def field_mode(self) -> FieldMode:
        return self._field_mode

    async def _call(self, func, *args):
        return await call_with_retry(
            func, *args, attempts=self._retry_attempts, wait=self._retry_wait
        )

    async def _run(self, entity_id: str) -> SyncOutcome:
        entity = await self._call(self._gateway.get_entity, entity_id)
        product_id = self._gateway.get_parent_product_id(entity)
        if not product_id:
            logger.warning("sync.skipped_no_parent", entity_id=entity_id)
            return SyncOutcome.SKIPPED_NO_PARENT

        product = await self._call(self._gateway.get_product, product_id)
        product_name = product.name
        if not product_name:
            logger.info("sync.skipped_no_product_name", entity_id=entity_id, product_id=product_id)
            return SyncOutcome.SKIPPED_NO_PRODUCT_NAME

        definition: FieldDefinition | None = None
        if self._field_mode == FieldMode.ENUMERATED:
            # Options are re-read on every sync so newly added products match
            definition = await self._call(self._gateway.get_field_definition, self._field_id)

        value = self._resolver.resolve(self._field_mode, definition, product_name)
        await self._call(self._gateway.set_field_value, entity_id, self._field_id, value)

        logger.info(
            "sync.updated",
            entity_id=entity_id,
            product_id=product_id,
            product_name=product_name,
            field_id=self._field_id,
            field_mode=self._field_mode.value,
            option_id=value.option_id,
        )
        return SyncOutcome.UPDATED

    async def sync_entity(self, entity_id: str) -> SyncOutcome:
        """Sync one feature. Never raises; the outcome is returned and logged."""
        try:
            outcome = await self._run(entity_id)
        except NoMatchingOption as exc:
            logger.error(
                "sync.no_matching_option",
                entity_id=entity_id,
                field_id=exc.field_id,
                product_name=exc.product_name,
            )
            outcome = SyncOutcome.NO_MATCHING_OPTION
        except RemoteError as exc:
            logger.error(
                "sync.remote_error",
                entity_id=entity_id,
                status_code=exc.status_code,
                error=exc.message,
            )
            outcome = SyncOutcome.REMOTE_ERROR
        except Exception as exc:
            logger.error("sync.failed", entity_id=entity_id, error=str(exc), exc_info=True)
            outcome = SyncOutcome.FAILED

        entity_syncs_total.labels(outcome=outcome.value).inc()
        return outcome

    async def sync_many(self, entity_ids: Iterable[str]) -> SyncResult:
        """Sync features sequentially in the given order, isolating failures."""
        result = SyncResult()

        for entity_id in entity_ids:
            outcome = await self.sync_entity(entity_id)
            result.outcomes[entity_id] = outcome
            if outcome == SyncOutcome.UPDATED:
                result.updated += 1
            elif outcome.is_skip:
                result.skipped += 1
            else:
                result.failed += 1
                result.errors.append(f"{entity_id}: {outcome.value}")

        logger.info(
            "sync.batch_complete",
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            errors=result.errors,
        )
        return result
