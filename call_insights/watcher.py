"""Polling watcher for transcript drop files and the aggregation triggers."""
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .loader import load_transcript_file
from .orchestrator import AggregationWorker, CallProcessor
from .storage import ProfileRepository

logger = logging.getLogger(__name__)


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def reconciled_call_ids(profiles: ProfileRepository) -> set[str]:
    """Call ids already folded into a profile.

    A stored assessment alone does not count: it is saved before its profile,
    so a call whose profile save failed must be picked up again after a restart.
    """
    return {
        call.call_id
        for profile in profiles.load_all()
        for call in profile.call_history
    }


class TranscriptWatcher:
    """Process new transcript files and request aggregation.

    Aggregation is requested for the current day after every
    ``aggregate_threshold`` processed calls and every ``aggregation_interval``
    seconds. Both triggers go through the same worker, which drops duplicate
    requests. A transcript whose processing fails is retried on the next poll.
    A file that cannot be read is reported once and retried after it changes.
    ``processed`` holds file stems or call ids that are already handled.
    """

    def __init__(
        self,
        processor: CallProcessor,
        worker: AggregationWorker,
        transcripts_dir: Path,
        poll_interval: float = 5.0,
        aggregate_threshold: int = 10,
        aggregation_interval: float = 86400.0,
        processed: set[str] | None = None,
    ):
        self.processor = processor
        self.worker = worker
        self.transcripts_dir = Path(transcripts_dir)
        self.poll_interval = poll_interval
        self.aggregate_threshold = aggregate_threshold
        self.aggregation_interval = aggregation_interval
        self.processed: set[str] = set(processed or ())
        # Stem -> mtime of files that failed to load; retried once they change
        self.unreadable: dict[str, float] = {}
        self.since_aggregate = 0

    async def poll_once(self) -> int:
        """Process every unseen transcript file once; returns how many succeeded."""
        if not self.transcripts_dir.exists():
            return 0

        handled = 0
        for path in sorted(self.transcripts_dir.glob("*.json")):
            if path.stem in self.processed:
                continue

            try:
                mtime = path.stat().st_mtime
            except OSError:
                # Removed between listing and reading
                continue
            if self.unreadable.get(path.stem) == mtime:
                continue

            try:
                record = load_transcript_file(path)
            except (OSError, ValueError, ValidationError) as e:
                logger.error(f"Failed to read transcript {path.name}: {e}")
                self.unreadable[path.stem] = mtime
                continue
            self.unreadable.pop(path.stem, None)

            if record.call_id in self.processed:
                self.processed.add(path.stem)
                continue

            if not record.transcript.strip():
                logger.info(f"Skipping empty transcript {path.name}")
                self.processed.add(path.stem)
                continue

            try:
                _, profile = await self.processor.process(record)
            except Exception:
                logger.exception(f"Failed to process transcript {path.name}")
                continue

            self.processed.update((path.stem, record.call_id))
            handled += 1
            self.since_aggregate += 1
            logger.info(
                f"Processed {path.name}: account {profile.account_id} "
                f"(call #{profile.total_calls}, health {profile.current_status.health_score})"
            )

            if self.since_aggregate >= self.aggregate_threshold:
                self.since_aggregate = 0
                logger.info("Aggregation threshold reached")
                self.worker.request(today())

        return handled

    async def watch(self) -> None:
        logger.info(
            f"Watching {self.transcripts_dir} every {self.poll_interval}s "
            f"(aggregate after {self.aggregate_threshold} calls)"
        )
        while True:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def schedule(self) -> None:
        while True:
            await asyncio.sleep(self.aggregation_interval)
            logger.info("Scheduled aggregation")
            self.worker.request(today())

    async def run(self) -> None:
        self.worker.start()
        try:
            await asyncio.gather(self.watch(), self.schedule())
        finally:
            await self.worker.stop()
