"""Key-value persistence for profiles, summaries, tickets and assessments."""
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .models import AccountProfile, CallAssessment, PeriodSummary, Ticket

logger = logging.getLogger(__name__)

PROFILES = "profiles"
SUMMARIES = "summaries"
TICKETS = "tickets"
ASSESSMENTS = "assessments"

T = TypeVar("T", bound=BaseModel)


class CallInsightsError(Exception):
    """Base error for the call_insights package."""


class StorageError(CallInsightsError):
    """Loading or saving a record failed."""


class Store(Protocol):
    """Namespaced key-value store with upsert semantics.

    ``load`` returns None when the key does not exist and raises
    ``StorageError`` on any other failure.
    """

    def load(self, namespace: str, key: str) -> str | None: ...

    def save(self, namespace: str, key: str, payload: str) -> None: ...

    def keys(self, namespace: str, prefix: str = "") -> list[str]: ...

    def delete(self, namespace: str, key: str) -> None: ...


class FileStore:
    """One JSON file per key: <root>/<namespace>/<key>.json

    Keys may contain '/' to nest records in subdirectories. Writes go to a
    temporary file first and are moved into place, so a reader never sees a
    half-written record.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str, key: str) -> Path:
        if not key or ".." in key.split("/"):
            raise StorageError(f"Invalid key: {key!r}")
        return self.root / namespace / f"{key}.json"

    def load(self, namespace: str, key: str) -> str | None:
        path = self._path(namespace, key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {namespace}/{key}: {e}") from e

    def save(self, namespace: str, key: str, payload: str) -> None:
        path = self._path(namespace, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {namespace}/{key}: {e}") from e

    def keys(self, namespace: str, prefix: str = "") -> list[str]:
        base = self.root / namespace
        if not base.exists():
            return []
        keys = []
        for path in base.rglob("*.json"):
            key = path.relative_to(base).with_suffix("").as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    def delete(self, namespace: str, key: str) -> None:
        """Remove a record; deleting a missing key is a no-op."""
        path = self._path(namespace, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {namespace}/{key}: {e}") from e


class FallbackStore:
    """Primary store with a secondary store used when the primary fails.

    A load that fails on the primary is only answered by the secondary when
    the secondary holds the record; otherwise the primary's error is raised,
    so a failed read is never mistaken for a missing record.
    """

    def __init__(self, primary: Store, secondary: Store):
        self.primary = primary
        self.secondary = secondary

    def load(self, namespace: str, key: str) -> str | None:
        primary_error = None
        try:
            payload = self.primary.load(namespace, key)
        except StorageError as e:
            logger.warning(f"Primary load failed for {namespace}/{key}, using fallback: {e}")
            primary_error = e
            payload = None
        if payload is not None:
            return payload

        payload = self.secondary.load(namespace, key)
        if payload is None and primary_error is not None:
            raise primary_error
        return payload

    def save(self, namespace: str, key: str, payload: str) -> None:
        try:
            self.primary.save(namespace, key, payload)
        except StorageError as e:
            logger.warning(f"Primary save failed for {namespace}/{key}, using fallback: {e}")
            self.secondary.save(namespace, key, payload)

    def keys(self, namespace: str, prefix: str = "") -> list[str]:
        try:
            primary_keys = set(self.primary.keys(namespace, prefix))
        except StorageError as e:
            logger.warning(f"Primary listing failed for {namespace}, using fallback: {e}")
            primary_keys = set()
        return sorted(primary_keys | set(self.secondary.keys(namespace, prefix)))

    def delete(self, namespace: str, key: str) -> None:
        # The record may live in either store
        self.secondary.delete(namespace, key)
        self.primary.delete(namespace, key)


class Repository(Generic[T]):
    """Typed access to one namespace of a store."""

    def __init__(self, store: Store, namespace: str, model: type[T]):
        self.store = store
        self.namespace = namespace
        self.model = model

    def get(self, key: str) -> T | None:
        payload = self.store.load(self.namespace, key)
        if payload is None:
            return None
        try:
            return self.model.model_validate_json(payload)
        except ValidationError as e:
            raise StorageError(f"Corrupt record {self.namespace}/{key}: {e}") from e

    def put(self, key: str, value: T) -> None:
        self.store.save(self.namespace, key, value.model_dump_json(indent=2))

    def keys(self, prefix: str = "") -> list[str]:
        return self.store.keys(self.namespace, prefix)

    def delete(self, key: str) -> None:
        self.store.delete(self.namespace, key)

    def load_all(self, prefix: str = "") -> list[T]:
        records = []
        for key in self.keys(prefix):
            record = self.get(key)
            if record is not None:
                records.append(record)
        return records


class ProfileRepository(Repository[AccountProfile]):
    def __init__(self, store: Store):
        super().__init__(store, PROFILES, AccountProfile)

    def save(self, profile: AccountProfile) -> None:
        self.put(profile.account_id, profile)


class SummaryRepository(Repository[PeriodSummary]):
    def __init__(self, store: Store):
        super().__init__(store, SUMMARIES, PeriodSummary)

    def save(self, summary: PeriodSummary) -> None:
        self.put(summary.period, summary)


class TicketRepository(Repository[Ticket]):
    def __init__(self, store: Store):
        super().__init__(store, TICKETS, Ticket)

    def save(self, ticket: Ticket) -> None:
        self.put(ticket.ticket_id, ticket)

    def for_period(self, period: str) -> list[Ticket]:
        tickets = [t for t in self.load_all(f"{period}-") if t.period == period]
        return sorted(tickets, key=lambda t: t.priority)

    def replace_period(self, period: str, tickets: list[Ticket]) -> None:
        """Make ``tickets`` the period's complete ticket set.

        New tickets are written before stale ones are removed, so a failure
        never leaves the period with fewer tickets than either run produced.
        """
        stale = set(self.keys(f"{period}-")) - {t.ticket_id for t in tickets}
        for ticket in tickets:
            self.save(ticket)
        for key in sorted(stale):
            self.delete(key)
            logger.info(f"Removed stale ticket {key}")


class AssessmentRepository(Repository[CallAssessment]):
    """Assessments filed by call date: YYYY-MM/DD/<account>_<call>"""

    def __init__(self, store: Store):
        super().__init__(store, ASSESSMENTS, CallAssessment)

    @staticmethod
    def _date_prefix(day: date) -> str:
        return f"{day.strftime('%Y-%m')}/{day.strftime('%d')}/"

    def save(self, assessment: CallAssessment) -> None:
        key = self._date_prefix(assessment.timestamp.date())
        key += f"{assessment.account_id}_{assessment.call_id}"
        self.put(key, assessment)

    def for_date(self, day: date) -> list[CallAssessment]:
        return self.load_all(self._date_prefix(day))
