"""
Load parsed ULS records into PostgreSQL with upsert logic (idempotency)
"""

from typing import Any, Dict, List, Sequence
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, DataError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
from ingestion.parsers.uls_parser import RecordSpec
from ingestion.transformers.dedup import dedupe_keep_last
from core.exceptions import UpsertError
import logging

logger = logging.getLogger(__name__)


class UpsertWriter:
    """
    Write batches of records to one destination table by natural key.

    Ensures:
    - No duplicate rows on repeated runs (INSERT ... ON CONFLICT DO UPDATE)
    - Last write wins for every non-key column
    - One bad row never sinks the rest of its batch
    """

    def __init__(self, db_session: AsyncSession, spec: RecordSpec):
        self.db = db_session
        self.spec = spec
        self.table = spec.table

    async def write(self, records: Sequence[BaseModel]) -> int:
        """
        Upsert a batch and commit.

        The batch is deduplicated first; a failing multi-row statement is
        retried one row at a time.

        Returns:
            Number of rows persisted
        """
        if not records:
            return 0

        batch = dedupe_keep_last(records, self.spec.key)
        rows = [self._to_row(record) for record in batch]

        try:
            await self.db.execute(self._upsert_statement(rows))
            await self.db.commit()
            logger.debug(f"Upserted {len(rows)} rows into {self.spec.table_name}")
            return len(rows)
        except SQLAlchemyError as e:
            logger.warning(
                f"Batch upsert of {len(rows)} rows into {self.spec.table_name} failed, "
                f"falling back to row-by-row: {str(e)}"
            )
            await self._rollback(len(rows), e)

        return await self._write_row_by_row(rows)

    async def _write_row_by_row(self, rows: List[Dict[str, Any]]) -> int:
        saved = 0

        for row in rows:
            try:
                await self.db.execute(self._upsert_statement([row]))
                await self.db.commit()
                saved += 1
            except (IntegrityError, DataError) as e:
                # Row-level problem: drop it and keep going
                await self._rollback(len(rows), e)
                logger.error(
                    f"Dropped {self.spec.tag} record {row.get('call_sign')} "
                    f"(key={self._key_of(row)}): {str(e.orig) if e.orig else str(e)}"
                )
            except SQLAlchemyError as e:
                await self._rollback(len(rows), e)
                error = UpsertError(
                    f"Row upsert into {self.spec.table_name} failed",
                    context={
                        "table_name": self.spec.table_name,
                        "batch_size": len(rows),
                        "record_key": str(self._key_of(row)),
                    },
                    original_exception=e
                )
                logger.error(str(error), extra={"error_context": error.to_dict()})
                raise error

        if saved < len(rows):
            logger.warning(
                f"Row-by-row fallback saved {saved}/{len(rows)} rows into {self.spec.table_name}"
            )
        return saved

    def _upsert_statement(self, rows: List[Dict[str, Any]]):
        stmt = insert(self.table).values(rows)
        key_fields = self.spec.key_fields
        update_columns = {
            column: stmt.excluded[column]
            for column in rows[0]
            if column not in key_fields
        }
        update_columns["updated_at"] = func.now()

        return stmt.on_conflict_do_update(
            index_elements=list(key_fields),
            set_=update_columns,
        )

    async def _rollback(self, batch_size: int, cause: Exception):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            raise UpsertError(
                f"Rollback on {self.spec.table_name} failed",
                context={"table_name": self.spec.table_name, "batch_size": batch_size},
                original_exception=e
            ) from cause

    def _key_of(self, row: Dict[str, Any]) -> tuple:
        return tuple(row.get(field) for field in self.spec.key_fields)

    @staticmethod
    def _to_row(record) -> Dict[str, Any]:
        if isinstance(record, BaseModel):
            return record.model_dump()
        return dict(record)
