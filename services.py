import asyncio
from typing import AsyncIterable, Callable, Iterable, List, Optional, Union
import structlog

from config import Settings, get_settings
from models import AccountSnapshot, ApplyOutcome, ProcessingReport, TransactionRecord
from repositories import AccountRepository, InMemoryAccountRepository

# Configure structured logging
logger = structlog.get_logger()


class LedgerService:
    """Routes transaction records to the owning account, in arrival order.

    Per-record failures never stop processing: they are returned as
    ``ApplyOutcome`` values, logged, and tallied by ``process``.
    """

    def __init__(self, account_repo: AccountRepository, settings: Optional[Settings] = None):
        self.account_repo = account_repo
        self.settings = settings or get_settings()
        self._log_noop = getattr(logger, self.settings.noop_log_level.lower())

    def route(self, record: TransactionRecord) -> ApplyOutcome:
        account = self.account_repo.get_or_create(record.client)
        outcome = account.apply(record)

        if outcome.is_rejection:
            logger.warning(
                "Transaction rejected",
                client_id=record.client,
                tx_id=record.tx,
                type=record.type.value,
                amount=None if record.amount is None else str(record.amount),
                outcome=outcome.value
            )
        elif outcome.is_noop:
            self._log_noop(
                "Transaction ignored",
                client_id=record.client,
                tx_id=record.tx,
                type=record.type.value,
                outcome=outcome.value
            )

        return outcome

    def process(
        self,
        records: Iterable[TransactionRecord],
        report: Optional[ProcessingReport] = None
    ) -> ProcessingReport:
        """Route every record and return the tally of outcomes."""
        report = report if report is not None else ProcessingReport()
        keep = self.settings.collect_rejections

        for record in records:
            report.record(record, self.route(record), keep_rejection=keep)

        logger.info(
            "Transactions processed",
            records=report.records_processed,
            applied=report.applied,
            rejected=report.rejected,
            ignored=report.ignored,
            accounts=self.account_repo.get_accounts_count()
        )
        return report

    def snapshot(self) -> List[AccountSnapshot]:
        return [
            AccountSnapshot.from_account(
                account,
                places=self.settings.amount_precision,
                rounding=self.settings.rounding
            )
            for account in self.account_repo
        ]


class ShardedLedgerService:
    """Partitions accounts across independent shards by ``client % shard_count``.

    Each shard owns its own repository and consumes a FIFO queue, so the
    records of one client are always applied by the same worker in input
    order. Shards share no state and need no locks.
    """

    def __init__(
        self,
        shard_count: Optional[int] = None,
        settings: Optional[Settings] = None,
        repository_factory: Callable[[], AccountRepository] = InMemoryAccountRepository
    ):
        self.settings = settings or get_settings()
        shard_count = shard_count or self.settings.shard_count
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self.shards = [
            LedgerService(repository_factory(), self.settings)
            for _ in range(shard_count)
        ]

    def shard_for(self, client_id: int) -> LedgerService:
        return self.shards[client_id % len(self.shards)]

    async def process(
        self,
        records: Union[Iterable[TransactionRecord], AsyncIterable[TransactionRecord]]
    ) -> ProcessingReport:
        queues = [
            asyncio.Queue(maxsize=self.settings.shard_queue_size)
            for _ in self.shards
        ]
        workers = [
            asyncio.create_task(self._consume(shard, queue))
            for shard, queue in zip(self.shards, queues)
        ]
        producer = asyncio.create_task(self._produce(records, queues))
        tasks = [producer] + workers

        # A failed task stops the run; the others must not stay blocked on a queue.
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in tasks:
                if task.done() and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        report = ProcessingReport.merge(worker.result() for worker in workers)
        logger.info(
            "Sharded processing finished",
            shards=len(self.shards),
            records=report.records_processed,
            applied=report.applied,
            rejected=report.rejected,
            ignored=report.ignored
        )
        return report

    async def _produce(
        self,
        records: Union[Iterable[TransactionRecord], AsyncIterable[TransactionRecord]],
        queues: List[asyncio.Queue]
    ) -> None:
        if hasattr(records, "__aiter__"):
            async for record in records:
                await queues[record.client % len(queues)].put(record)
        else:
            for record in records:
                await queues[record.client % len(queues)].put(record)
        for queue in queues:
            await queue.put(None)

    async def _consume(self, shard: LedgerService, queue: asyncio.Queue) -> ProcessingReport:
        report = ProcessingReport()
        keep = self.settings.collect_rejections
        while True:
            record = await queue.get()
            if record is None:
                return report
            report.record(record, shard.route(record), keep_rejection=keep)

    def snapshot(self) -> List[AccountSnapshot]:
        rows = [row for shard in self.shards for row in shard.snapshot()]
        return sorted(rows, key=lambda row: row.client)


# Factory functions for dependency injection
def get_ledger_service(
    account_repo: Optional[AccountRepository] = None,
    settings: Optional[Settings] = None
) -> LedgerService:
    return LedgerService(account_repo or InMemoryAccountRepository(), settings)


def get_sharded_ledger_service(
    shard_count: Optional[int] = None,
    settings: Optional[Settings] = None
) -> ShardedLedgerService:
    return ShardedLedgerService(shard_count, settings)
