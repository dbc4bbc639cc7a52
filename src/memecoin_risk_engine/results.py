"""Per-entity results and the continue-on-error stage runner.

A stage processes tokens or wallets one at a time. A failure for one
entity is rolled back, logged and recorded in `processing_errors`; the
stage then moves on to the next entity.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from memecoin_risk_engine.storage.repos import ProcessingErrorDTO, ProcessingErrorRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

E = TypeVar("E")
T = TypeVar("T")


@dataclass(frozen=True)
class EntityResult(Generic[T]):
    """Outcome of processing a single token or wallet."""

    entity_id: str
    ok: bool
    value: T | None = None
    error_type: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, entity_id: str, value: T | None = None) -> EntityResult[T]:
        return cls(entity_id=entity_id, ok=True, value=value)

    @classmethod
    def failure(cls, entity_id: str, error: Exception) -> EntityResult[T]:
        return cls(entity_id=entity_id, ok=False, error_type=type(error).__name__, message=str(error))


async def process_each(
    session: AsyncSession,
    entities: Iterable[E],
    handler: Callable[[E], Awaitable[T]],
    *,
    stage: str,
    key: Callable[[E], str],
) -> AsyncIterator[EntityResult[T]]:
    """Run `handler` per entity, committing each success and rolling back each failure."""
    for entity in entities:
        entity_id = key(entity)
        try:
            value = await handler(entity)
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.warning("stage=%s entity=%s failed: %s: %s", stage, entity_id, type(e).__name__, e)
            yield EntityResult.failure(entity_id, e)
            continue
        yield EntityResult.success(entity_id, value)


@dataclass
class StageReport:
    """Summary of one stage of a pass."""

    stage: str
    succeeded: int = 0
    failures: list[EntityResult[Any]] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    def add(self, result: EntityResult[Any]) -> None:
        if result.ok:
            self.succeeded += 1
        else:
            self.failures.append(result)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failed_entities": [r.entity_id for r in self.failures],
            **self.details,
        }


async def run_stage(
    session: AsyncSession,
    entities: Iterable[E],
    handler: Callable[[E], Awaitable[Any]],
    *,
    stage: str,
    key: Callable[[E], str],
) -> StageReport:
    """Drive `process_each` to completion and persist any failures."""
    report = StageReport(stage=stage)
    async for result in process_each(session, entities, handler, stage=stage, key=key):
        report.add(result)

    if report.failures:
        await ProcessingErrorRepository(session).insert_many(
            [
                ProcessingErrorDTO(
                    stage=stage,
                    entity_id=r.entity_id,
                    error_type=r.error_type or "Exception",
                    message=r.message or "",
                )
                for r in report.failures
            ]
        )
        await session.commit()

    logger.info("Stage %s complete: %d ok, %d failed", stage, report.succeeded, report.failed)
    return report
