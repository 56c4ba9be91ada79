#!/usr/bin/env python3
"""
Test suite for MatchRepository versioning, status transitions and listings.
"""

import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from core.config_loader import DatabaseConfig
from core.exceptions import MatchNotFound, StatusConflict
from core.matcher.models import FeedbackOutcome, MatchStatus
from core.scorer.models import CATEGORY_ORDER, Factor, ScoredPair
from database.database import create_session_factory, init_db
from database.repositories.match import record_to_result
from database.uow import match_uow


def scored_pair(candidate_id="cand-1", job_id="job-1", score=80):
    factors = [
        Factor(category=c, weight=1 / 6, raw_score=float(score), detail=f"{c.value} detail", positive=True)
        for c in CATEGORY_ORDER
    ]
    return ScoredPair(
        candidate_id=candidate_id,
        job_id=job_id,
        score=score,
        confidence=0.8,
        factors=factors,
        weights={c.value: 1 / 6 for c in CATEGORY_ORDER},
        reasons=["Skills: good", "Experience: good"],
        recommendations=[],
    )


class RepositoryTestCase(unittest.TestCase):

    def setUp(self):
        self.db_dir = tempfile.mkdtemp(prefix="match-repo-")
        url = f"sqlite:///{os.path.join(self.db_dir, 'matching.db')}"
        self.session_factory = create_session_factory(DatabaseConfig(url=url))
        init_db(self.session_factory)

    def tearDown(self):
        self.session_factory.kw["bind"].dispose()
        shutil.rmtree(self.db_dir, ignore_errors=True)

    def upsert(self, **kwargs):
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.upsert(scored_pair(**kwargs)))

    def set_status(self, match_id, status):
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.update_status(match_id, status))

    def get(self, match_id):
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.get(match_id))


class TestUpsert(RepositoryTestCase):

    def test_first_write_creates_version_one(self):
        result = self.upsert()

        self.assertEqual(result.version, 1)
        self.assertTrue(result.is_current)
        self.assertIsNone(result.supersedes_id)
        self.assertEqual(result.status, MatchStatus.PENDING)
        self.assertEqual(len(result.factors), len(CATEGORY_ORDER))
        self.assertEqual(result.reasons, ["Skills: good", "Experience: good"])
        self.assertIsNotNone(result.created_at.tzinfo)

    def test_pending_is_overwritten_in_place(self):
        first = self.upsert(score=60)
        second = self.upsert(score=90)

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.score, 90)
        with match_uow(self.session_factory) as repo:
            self.assertEqual(len(repo.matches.list_versions("cand-1", "job-1")), 1)

    def test_reviewed_match_gets_new_version(self):
        first = self.upsert(score=60)
        self.set_status(first.id, MatchStatus.REVIEWED)

        second = self.upsert(score=90)

        self.assertNotEqual(first.id, second.id)
        self.assertEqual(second.version, 2)
        self.assertFalse(second.is_current)
        self.assertEqual(second.supersedes_id, first.id)
        untouched = self.get(first.id)
        self.assertEqual(untouched.score, 60)
        self.assertEqual(untouched.status, MatchStatus.REVIEWED)
        self.assertTrue(untouched.is_current)

    def test_decision_between_writes_stores_new_version(self):
        first = self.upsert(score=60)

        with match_uow(self.session_factory) as repo:
            current = repo.matches.get_current("cand-1", "job-1")
            self.assertTrue(repo.matches._cas(current.id, "pending", status="accepted"))
            record = repo.matches.upsert(scored_pair(score=95))
            result = record_to_result(record)

        self.assertEqual(result.version, 2)
        self.assertFalse(result.is_current)
        self.assertEqual(self.get(first.id).status, MatchStatus.ACCEPTED)

    def test_refresh_between_writes_leaves_superseded_version_untouched(self):
        first = self.upsert(score=60)

        with match_uow(self.session_factory) as repo:
            stale = repo.matches.get_current("cand-1", "job-1")
            refreshed = record_to_result(repo.matches.refresh(first.id, scored_pair(score=70)))
            # A worker that read the current record before the refresh
            with patch.object(repo.matches, "get_current", return_value=stale):
                result = record_to_result(repo.matches.upsert(scored_pair(score=95)))

        self.assertNotEqual(result.id, first.id)
        self.assertFalse(result.is_current)
        self.assertEqual(result.version, 3)
        superseded = self.get(first.id)
        self.assertEqual(superseded.score, 60)
        self.assertFalse(superseded.is_current)
        self.assertEqual(self.get(refreshed.id).score, 70)


class TestStatusTransitions(RepositoryTestCase):

    def test_allowed_path(self):
        match = self.upsert()
        self.assertEqual(self.set_status(match.id, MatchStatus.REVIEWED).status, MatchStatus.REVIEWED)
        self.assertEqual(self.set_status(match.id, MatchStatus.ACCEPTED).status, MatchStatus.ACCEPTED)

    def test_terminal_status_is_final(self):
        match = self.upsert()
        self.set_status(match.id, MatchStatus.REJECTED)

        for status in (MatchStatus.ACCEPTED, MatchStatus.PENDING, MatchStatus.REVIEWED):
            with self.subTest(status=status):
                with self.assertRaises(StatusConflict):
                    self.set_status(match.id, status)

    def test_cannot_return_to_pending(self):
        match = self.upsert()
        self.set_status(match.id, MatchStatus.REVIEWED)
        with self.assertRaises(StatusConflict):
            self.set_status(match.id, MatchStatus.PENDING)

    def test_reopen(self):
        match = self.upsert()
        self.set_status(match.id, MatchStatus.ACCEPTED)

        with match_uow(self.session_factory) as repo:
            reopened = record_to_result(repo.matches.reopen(match.id))

        self.assertEqual(reopened.status, MatchStatus.PENDING)
        with match_uow(self.session_factory) as repo:
            with self.assertRaises(StatusConflict):
                repo.matches.reopen(match.id)

    def test_superseded_version_is_read_only(self):
        first = self.upsert(score=60)
        with match_uow(self.session_factory) as repo:
            repo.matches.refresh(first.id, scored_pair(score=70))

        with self.assertRaises(StatusConflict):
            self.set_status(first.id, MatchStatus.REVIEWED)
        with match_uow(self.session_factory) as repo:
            with self.assertRaises(StatusConflict):
                repo.matches.reopen(first.id)
            self.assertFalse(repo.matches._cas(first.id, "pending", status="accepted"))

        self.assertEqual(self.get(first.id).status, MatchStatus.PENDING)

    def test_unknown_match(self):
        with self.assertRaises(MatchNotFound):
            self.set_status("missing", MatchStatus.REVIEWED)


class TestRefreshVersions(RepositoryTestCase):

    def test_refresh_of_pending_becomes_current(self):
        first = self.upsert(score=60)

        with match_uow(self.session_factory) as repo:
            refreshed = record_to_result(repo.matches.refresh(first.id, scored_pair(score=70)))

        self.assertTrue(refreshed.is_current)
        self.assertEqual(refreshed.version, 2)
        self.assertFalse(self.get(first.id).is_current)
        with match_uow(self.session_factory) as repo:
            current = repo.matches.get_current("cand-1", "job-1")
            self.assertEqual(current.id, refreshed.id)

    def test_refresh_of_old_version_is_not_current(self):
        first = self.upsert(score=60)
        with match_uow(self.session_factory) as repo:
            second = record_to_result(repo.matches.refresh(first.id, scored_pair(score=70)))
            third = record_to_result(repo.matches.refresh(first.id, scored_pair(score=75)))

        self.assertTrue(second.is_current)
        self.assertFalse(third.is_current)
        self.assertEqual(third.version, 3)
        self.assertEqual(third.supersedes_id, first.id)


class TestListings(RepositoryTestCase):

    def setUp(self):
        super().setUp()
        for i, score in enumerate([55, 90, 72, 90, 40]):
            self.upsert(candidate_id=f"cand-{i}", job_id="job-1", score=score)
        self.upsert(candidate_id="cand-0", job_id="job-2", score=65)

    def test_sorted_and_paginated(self):
        with match_uow(self.session_factory) as repo:
            page_one, total = repo.matches.list_for_job("job-1", page=1, page_size=2)
            page_two, _ = repo.matches.list_for_job("job-1", page=2, page_size=2)
            page_one = [record_to_result(r) for r in page_one]
            page_two = [record_to_result(r) for r in page_two]

        self.assertEqual(total, 5)
        self.assertEqual([r.score for r in page_one], [90, 90])
        self.assertEqual([r.candidate_id for r in page_one], ["cand-1", "cand-3"])
        self.assertEqual([r.score for r in page_two], [72, 55])

    def test_min_score_and_status_filters(self):
        with match_uow(self.session_factory) as repo:
            records, total = repo.matches.list_for_job("job-1", min_score=70)
            self.assertEqual(total, 3)

            records, total = repo.matches.list_for_job("job-1", status=MatchStatus.ACCEPTED)
            self.assertEqual((records, total), ([], 0))

    def test_candidate_listing(self):
        with match_uow(self.session_factory) as repo:
            records, total = repo.matches.list_for_candidate("cand-0")
            self.assertEqual(total, 2)
            self.assertEqual([r.job_id for r in records], ["job-2", "job-1"])

    def test_query_filters(self):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        with match_uow(self.session_factory) as repo:
            self.assertEqual(len(repo.matches.query(job_ids=["job-2"])), 1)
            self.assertEqual(len(repo.matches.query(min_score=90)), 2)
            self.assertEqual(len(repo.matches.query(start=future)), 0)
            self.assertEqual(len(repo.matches.query(candidate_ids=["cand-0", "cand-4"])), 3)


class TestFeedbackAndSettings(RepositoryTestCase):

    def test_feedback_is_appended(self):
        match = self.upsert()
        with match_uow(self.session_factory) as repo:
            repo.feedback.add(match.id, FeedbackOutcome.NO_RESPONSE)
        with match_uow(self.session_factory) as repo:
            repo.feedback.add(match.id, FeedbackOutcome.HIRED, rating=5, user_id="recruiter-1")

        with match_uow(self.session_factory) as repo:
            self.assertEqual(len(repo.feedback.list_for_match(match.id)), 2)
            outcomes = repo.feedback.latest_outcomes()

        self.assertEqual(outcomes, [(match.id, 80, "hired")])
        latest = self.get(match.id).feedback
        self.assertEqual(latest.outcome, FeedbackOutcome.HIRED)
        self.assertEqual(latest.rating, 5)

    def test_settings_round_trip(self):
        with match_uow(self.session_factory) as repo:
            self.assertIsNone(repo.settings.get_json("missing"))
            repo.settings.set_json("matching.default_weights", {"skills": 0.5})
            repo.settings.set_json("matching.default_weights", {"skills": 0.6})

        with match_uow(self.session_factory) as repo:
            self.assertEqual(repo.settings.get_json("matching.default_weights"), {"skills": 0.6})


if __name__ == '__main__':
    unittest.main()
