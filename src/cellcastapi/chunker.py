import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Sequence, TypeVar

from cellcastapi.errors import RequestCancelled
from cellcastapi.models.envelope import NormalizedResult

logger = logging.getLogger("cellcastapi.chunker")

T = TypeVar("T")


class CallState(str, Enum):
    BUILDING = "building"
    DISPATCHING = "dispatching"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


@dataclass(frozen=True)
class Batch(Generic[T]):
    index: int
    start: int
    items: Sequence[T]

    @property
    def stop(self) -> int:
        return self.start + len(self.items)


@dataclass(frozen=True)
class BatchOutcome:
    result: NormalizedResult
    success_count: int
    item_results: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class ChunkResult:
    batch: Batch
    outcome: BatchOutcome | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class BatchFailure:
    index: int
    start: int
    stop: int
    error: BaseException


@dataclass(frozen=True)
class BulkResult:
    state: CallState
    total_items: int
    success_count: int
    item_results: list[Any]
    responses: list[NormalizedResult]
    failures: list[BatchFailure]
    batch_count: int
    rejected_batches: list[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is CallState.SUCCEEDED

    @property
    def failed_count(self) -> int:
        return self.total_items - self.success_count

    @property
    def failed_batches(self) -> list[int]:
        return [f.index for f in self.failures]

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "total_numbers": self.total_items,
            "success_number": self.success_count,
            "messages": self.item_results,
            "batches": self.batch_count,
            "rejected_batches": self.rejected_batches,
            "failed_batches": [
                {"index": f.index, "start": f.start, "stop": f.stop, "error": str(f.error)}
                for f in self.failures
            ],
        }

    def __repr__(self) -> str:
        return (
            f"<BulkResult state={self.state.value} total={self.total_items} "
            f"success={self.success_count} failed_batches={self.failed_batches}>"
        )


def partition(items: Sequence[T], chunk_size: int) -> list[Batch[T]]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    count = math.ceil(len(items) / chunk_size)
    return [
        Batch(index=i, start=i * chunk_size, items=items[i * chunk_size : (i + 1) * chunk_size])
        for i in range(count)
    ]


def partition_runs(
    items: Sequence[T], chunk_size: int, key: Callable[[T], Any]
) -> list[Batch[T]]:
    """Contiguous batches of at most ``chunk_size`` items sharing the same ``key``."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    batches: list[Batch[T]] = []
    start = 0
    for stop in range(1, len(items) + 1):
        if (
            stop == len(items)
            or stop - start == chunk_size
            or key(items[stop]) != key(items[start])
        ):
            batches.append(Batch(index=len(batches), start=start, items=items[start:stop]))
            start = stop
    return batches

def _final_state(returned: int, rejected: int, success_count: int, raised: bool) -> CallState:
    # A returned batch whose envelope is not SUCCESS counts against the call.
    if not raised and not rejected:
        return CallState.SUCCEEDED
    if not raised and rejected == returned and success_count == 0:
        return CallState.FAILED
    return CallState.PARTIALLY_FAILED


def merge(chunks: list[ChunkResult]) -> BulkResult:
    # Batch order, not completion order. Raises the first error when no batch returned.
    item_results: list[Any] = []
    responses: list[NormalizedResult] = []
    failures: list[BatchFailure] = []
    success_count = 0
    rejected: list[int] = []
    for chunk in sorted(chunks, key=lambda c: c.batch.index):
        batch = chunk.batch
        if chunk.error is not None:
            failures.append(BatchFailure(batch.index, batch.start, batch.stop, chunk.error))
        elif chunk.outcome is not None:
            responses.append(chunk.outcome.result)
            item_results.extend(chunk.outcome.item_results)
            success_count += chunk.outcome.success_count
            if not chunk.outcome.result.success:
                rejected.append(batch.index)

    if failures and not responses:
        raise failures[0].error

    return BulkResult(
        state=_final_state(len(responses), len(rejected), success_count, bool(failures)),
        total_items=sum(len(c.batch.items) for c in chunks),
        success_count=success_count,
        item_results=item_results,
        responses=responses,
        failures=failures,
        batch_count=len(chunks),
        rejected_batches=rejected,
    )


class BulkChunker:
    def __init__(self, chunk_size: int, max_workers: int = 1) -> None:
        self.chunk_size = chunk_size
        self.max_workers = max_workers

    def run(
        self,
        items: Sequence[T],
        call: Callable[[Batch[T]], BatchOutcome],
        cancel: threading.Event | None = None,
        key: Callable[[T], Any] | None = None,
    ) -> BulkResult:
        if key is None:
            batches = partition(items, self.chunk_size)
        else:
            batches = partition_runs(items, self.chunk_size, key)
        logger.info(f"Dispatching {len(items)} items in {len(batches)} batches")
        if self.max_workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batches))) as pool:
                chunks = list(pool.map(lambda b: self._run_batch(b, call, cancel), batches))
        else:
            chunks = [self._run_batch(b, call, cancel) for b in batches]
        return merge(chunks)

    def _run_batch(
        self,
        batch: Batch[T],
        call: Callable[[Batch[T]], BatchOutcome],
        cancel: threading.Event | None,
    ) -> ChunkResult:
        if cancel is not None and cancel.is_set():
            return ChunkResult(batch, error=RequestCancelled(f"Batch {batch.index} cancelled"))
        try:
            return ChunkResult(batch, outcome=call(batch))
        except Exception as e:
            logger.error(
                f"Batch {batch.index} (items {batch.start}-{batch.stop - 1}) failed: "
                f"{type(e).__name__} - {e}"
            )
            return ChunkResult(batch, error=e)
