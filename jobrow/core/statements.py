from sqlalchemy import Insert, Select, Update, insert, select, update

from jobrow.models.job import JobRecord
from jobrow.models.job_state import JobState
from jobrow.models.params import FetchParams, InsertParams
from jobrow.models.raw_job import RawJob


class JobStatements:
    """Statements the storage collaborator executes to persist the model.

    Nothing here touches a database. Every statement is built from
    validated parameters or from a record whose transition has already
    been checked.
    """

    @staticmethod
    def insert_statement(insert_params: InsertParams) -> Insert:
        raw_job = RawJob.from_insert_params(insert_params)
        stmt = (
            insert(RawJob)
            .values(
                kind=raw_job.kind,
                args=raw_job.args,
                queue=raw_job.queue,
                priority=raw_job.priority,
                max_attempts=raw_job.max_attempts,
                attempt=raw_job.attempt,
                state=raw_job.state,
                created_at=raw_job.created_at,
                scheduled_at=raw_job.scheduled_at,
                attempted_by=raw_job.attempted_by,
                errors=raw_job.errors,
                tags=raw_job.tags,
            )
            .returning(RawJob.id)
        )
        return stmt

    @staticmethod
    def fetch_statement(fetch_params: FetchParams) -> Select:
        """Select the jobs a worker should fetch next.

        Only ``available`` jobs of one queue that are due are selected,
        highest priority first and oldest first within a priority. Rows
        locked by a concurrent fetch are skipped where the dialect
        supports it.
        """
        stmt = (
            select(RawJob)
            .where(
                RawJob.queue == fetch_params.queue,
                RawJob.state == JobState.AVAILABLE.value,
                RawJob.scheduled_at <= fetch_params.now_ms,
            )
            .order_by(RawJob.priority.asc(), RawJob.id.asc())
            .limit(fetch_params.limit)
            .with_for_update(skip_locked=True)
        )
        return stmt

    @staticmethod
    def save_statement(job: JobRecord, expected_state: JobState | str) -> Update:
        """Write back a transition with a compare-and-swap on the state.

        The update only matches while the row is still in
        ``expected_state``, the state the record was read in. Zero affected
        rows means another worker transitioned the job first.
        """
        expected_state = JobState.parse(expected_state)
        stmt = (
            update(RawJob)
            .where(
                RawJob.id == job.id,
                RawJob.state == expected_state.value,
            )
            .values(**job.row_values())
        )
        return stmt
