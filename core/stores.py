#!/usr/bin/env python3
"""
Record Stores - candidate and job lookups used by the matching engine.

The engine only reads from these stores. In-memory implementations can be
loaded from JSON files for local runs and tests; the cached wrappers add a
short-TTL read-through cache in front of any store.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Union
import json
import logging
import threading

from core.exceptions import NotFound
from core.models import Candidate, Job

logger = logging.getLogger(__name__)


class CandidateStore(ABC):
    @abstractmethod
    def get(self, candidate_id: str) -> Candidate:
        """Return the candidate snapshot or raise NotFound."""
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """All candidate ids, used when a request has no candidate filter."""
        pass


class JobStore(ABC):
    @abstractmethod
    def get(self, job_id: str) -> Job:
        """Return the job snapshot or raise NotFound."""
        pass


class _InMemoryStore:
    kind = "record"
    model = None

    def __init__(self, records: Optional[Iterable] = None):
        self._records: Dict[str, object] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self.add(record)

    def add(self, record: Union[dict, object]):
        if isinstance(record, dict):
            record = self.model.model_validate(record)
        with self._lock:
            self._records[record.id] = record
        return record

    def get(self, record_id: str):
        with self._lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFound(self.kind, record_id)
        return record

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    @classmethod
    def from_json(cls, path: str):
        """Load a store from a JSON file holding a list of records."""
        with open(path, "r") as f:
            data = json.load(f)
        store = cls(data)
        logger.info(f"Loaded {len(data)} {cls.kind} records from {path}")
        return store


class InMemoryCandidateStore(_InMemoryStore, CandidateStore):
    kind = "candidate"
    model = Candidate


class InMemoryJobStore(_InMemoryStore, JobStore):
    kind = "job"
    model = Job


class CachedCandidateStore(CandidateStore):
    """Read-through cache in front of a CandidateStore."""

    def __init__(self, store: CandidateStore, cache, ttl_seconds: Optional[int] = None):
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def get(self, candidate_id: str) -> Candidate:
        key = f"candidate:{candidate_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return Candidate.model_validate(cached)
        candidate = self.store.get(candidate_id)
        self.cache.set(key, candidate.model_dump(mode="json"), self.ttl_seconds)
        return candidate

    def list_ids(self) -> List[str]:
        return self.store.list_ids()

    def invalidate(self, candidate_id: str):
        self.cache.delete(f"candidate:{candidate_id}")


class CachedJobStore(JobStore):
    """Read-through cache in front of a JobStore."""

    def __init__(self, store: JobStore, cache, ttl_seconds: Optional[int] = None):
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def get(self, job_id: str) -> Job:
        key = f"job:{job_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return Job.model_validate(cached)
        job = self.store.get(job_id)
        self.cache.set(key, job.model_dump(mode="json"), self.ttl_seconds)
        return job

    def invalidate(self, job_id: str):
        self.cache.delete(f"job:{job_id}")
