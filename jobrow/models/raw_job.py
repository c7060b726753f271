from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Integer, SmallInteger, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .params import InsertParams
from .timestamps import now_ms


class BaseSQL(DeclarativeBase):
    """Metadata for the job table."""

    pass


class RawJob(BaseSQL):
    """Row-shaped job as exchanged with the storage engine.

    Timestamps are Unix epoch milliseconds in UTC. Use
    ``JobRecord.from_raw_job()`` to get the validated model.
    """

    __tablename__ = "jobs"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False, index=True)
    args: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    queue: Mapped[str] = mapped_column(String, nullable=False, index=True)
    priority: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=1
    )
    max_attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    attempt: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=0
    )
    state: Mapped[str] = mapped_column(
        String(30), nullable=False, default="available", index=True
    )
    created_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=now_ms
    )
    scheduled_at: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=now_ms, index=True
    )
    attempted_at: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    attempted_by: Mapped[Optional[list[str]]] = mapped_column(
        JSON, nullable=True
    )
    errors: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON, nullable=True
    )
    finalized_at: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    tags: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    @staticmethod
    def from_insert_params(insert_params: InsertParams) -> "RawJob":
        return RawJob(
            kind=insert_params.kind,
            args=insert_params.serialized_args,
            queue=insert_params.queue,
            priority=insert_params.priority,
            max_attempts=insert_params.max_attempts,
            attempt=0,
            state=insert_params.state.value,
            created_at=insert_params.created_at_ms,
            scheduled_at=insert_params.scheduled_at_ms,
            attempted_by=[],
            errors=[],
            tags=(
                sorted(insert_params.tags)
                if insert_params.tags is not None
                else None
            ),
        )
