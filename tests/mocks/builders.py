#!/usr/bin/env python3
"""
Test builders - candidates, jobs and a fully wired matching stack.

The stack uses a SQLite file (one per test) so worker threads and the test
share the same database through separate sessions.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import os
import shutil
import tempfile

from core.config_loader import MatchingConfig, QueueConfig, DatabaseConfig
from core.matcher.service import MatcherService
from core.models import Candidate, Job
from core.scorer import ScoringService, WeightingPolicy
from core.stores import InMemoryCandidateStore, InMemoryJobStore
from database.database import create_session_factory, init_db


def make_candidate(candidate_id: str = "cand-1", **overrides: Any) -> Candidate:
    data: Dict[str, Any] = {
        "id": candidate_id,
        "skills": [
            {"name": "Python", "proficiency": 80, "verified": True},
            {"name": "SQL", "proficiency": 70},
        ],
        "years_experience": 4,
        "location": {"city": "Berlin", "region": "Berlin", "country": "DE"},
        "work_modes": ["onsite", "hybrid"],
        "culture_tags": ["collaborative", "inclusive"],
        "compensation": {"min": 50000, "max": 65000, "currency": "EUR"},
    }
    data.update(overrides)
    return Candidate.model_validate(data)


def make_job(job_id: str = "job-1", **overrides: Any) -> Job:
    data: Dict[str, Any] = {
        "id": job_id,
        "required_skills": ["Python", "SQL"],
        "min_years": 2,
        "target_years": 5,
        "location": {"city": "Berlin", "region": "Berlin", "country": "DE"},
        "work_modes": ["onsite"],
        "culture_tags": ["inclusive", "fast-paced"],
        "compensation": {"min": 55000, "max": 70000, "currency": "EUR"},
    }
    data.update(overrides)
    return Job.model_validate(data)


def scenario_a_pair():
    """Strong verified skills, experienced, flexible-schedule need met by remote work."""
    candidate = Candidate.model_validate({
        "id": "cand-a",
        "skills": [
            {"name": "Distributed Systems", "proficiency": 90, "verified": True},
            {"name": "Relational Databases", "proficiency": 85, "verified": True},
        ],
        "years_experience": 6,
        "accommodation_needs": ["flexible_schedule"],
        "work_modes": ["remote"],
    })
    job = Job.model_validate({
        "id": "job-a",
        "required_skills": ["Distributed Systems", "Relational Databases"],
        "target_years": 3,
        "work_modes": ["remote"],
        "accessibility_features": ["remote_work"],
    })
    return candidate, job


def scenario_c_pair():
    """Good fit otherwise, but a wheelchair-access need the onsite job does not cover."""
    candidate = make_candidate("cand-c", accommodation_needs=["wheelchair_access"])
    job = make_job("job-c", accessibility_features=[], work_modes=["onsite"])
    return candidate, job


@dataclass
class MatchingStack:
    session_factory: Any
    candidates: InMemoryCandidateStore
    jobs: InMemoryJobStore
    scoring: ScoringService
    weighting: WeightingPolicy
    matcher: MatcherService
    config: MatchingConfig
    db_dir: Optional[str] = None

    def close(self):
        self.scoring.shutdown()
        self.session_factory.kw["bind"].dispose()
        if self.db_dir:
            shutil.rmtree(self.db_dir, ignore_errors=True)


def build_stack(db_path: Optional[str] = None, queue: Optional[QueueConfig] = None) -> MatchingStack:
    """Wire a MatcherService to a fresh SQLite file. Pass no path to use a temp dir."""
    db_dir = None
    if db_path is None:
        db_dir = tempfile.mkdtemp(prefix="matching-test-")
        db_path = os.path.join(db_dir, "matching.db")

    config = MatchingConfig(queue=queue or QueueConfig())
    session_factory = create_session_factory(DatabaseConfig(url=f"sqlite:///{db_path}"))
    init_db(session_factory)

    candidates = InMemoryCandidateStore()
    jobs = InMemoryJobStore()
    scoring = ScoringService(config.scorer)
    weighting = WeightingPolicy(config.weights)
    matcher = MatcherService(
        session_factory=session_factory,
        candidates=candidates,
        jobs=jobs,
        scoring=scoring,
        weighting=weighting,
        config=config
    )
    return MatchingStack(session_factory, candidates, jobs, scoring, weighting, matcher, config, db_dir)
