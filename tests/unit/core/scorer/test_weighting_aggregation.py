#!/usr/bin/env python3
"""
Test suite for weight resolution, aggregation and the ScoringService.
"""

import math
import threading
import time
import unittest

from core.config_loader import ScorerConfig, WeightsConfig
from core.exceptions import InvalidCriteria, ScorerTimeout
from core.scorer import ScoringService, WeightingPolicy
from core.scorer.aggregation import aggregate, confidence, weighted_score
from core.scorer.factors import DEFAULT_SCORERS
from core.scorer.models import CATEGORY_ORDER, Factor, FactorCategory, FactorScore
from core.scorer.weighting import WEIGHT_PRESETS, normalize_weights, weights_to_dict
from tests.mocks.builders import make_candidate, make_job


class TestWeightingPolicy(unittest.TestCase):
    """Test default weights, overrides and presets."""

    def setUp(self):
        self.policy = WeightingPolicy(WeightsConfig())

    def test_defaults_sum_to_one(self):
        self.assertAlmostEqual(sum(self.policy.defaults.values()), 1.0, delta=1e-6)
        self.assertEqual(list(self.policy.defaults.keys()), CATEGORY_ORDER)

    def test_override_is_merged_and_renormalized(self):
        weights = self.policy.resolve({"accessibility": 0.8})

        self.assertAlmostEqual(sum(weights.values()), 1.0, delta=1e-6)
        # 0.30 + 0.25 + 0.8 + 0.10 + 0.10 + 0.05 = 1.6
        self.assertAlmostEqual(weights[FactorCategory.ACCESSIBILITY], 0.5, places=6)
        self.assertAlmostEqual(weights[FactorCategory.SKILLS], 0.3 / 1.6, places=6)

    def test_zero_weight_disables_a_factor(self):
        weights = self.policy.resolve({"compensation": 0})
        self.assertEqual(weights[FactorCategory.COMPENSATION], 0.0)
        self.assertAlmostEqual(sum(weights.values()), 1.0, delta=1e-6)

    def test_rejects_unknown_category(self):
        with self.assertRaises(InvalidCriteria) as ctx:
            self.policy.resolve({"salary": 0.5})
        self.assertIn("Unknown weight category 'salary'", str(ctx.exception))

    def test_rejects_negative_non_numeric_and_non_finite(self):
        for bad in (-0.1, "high", True, float("nan"), float("inf")):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidCriteria):
                    self.policy.resolve({"skills": bad})

    def test_rejects_all_zero(self):
        with self.assertRaises(InvalidCriteria):
            self.policy.resolve({c.value: 0 for c in CATEGORY_ORDER})

    def test_update_defaults_keeps_unspecified_categories(self):
        before = self.policy.defaults
        self.policy.update_defaults({"skills": before[FactorCategory.SKILLS] * 2})

        after = self.policy.defaults
        self.assertAlmostEqual(sum(after.values()), 1.0, delta=1e-6)
        self.assertGreater(after[FactorCategory.SKILLS], before[FactorCategory.SKILLS])
        self.assertAlmostEqual(
            after[FactorCategory.EXPERIENCE] / after[FactorCategory.LOCATION],
            before[FactorCategory.EXPERIENCE] / before[FactorCategory.LOCATION]
        )

    def test_apply_preset(self):
        weights = self.policy.apply_preset("Accessibility_First")
        self.assertAlmostEqual(weights[FactorCategory.ACCESSIBILITY], 0.35, places=6)
        self.assertEqual(self.policy.defaults, weights)

    def test_apply_unknown_preset(self):
        with self.assertRaises(InvalidCriteria) as ctx:
            self.policy.apply_preset("random")
        for name in WEIGHT_PRESETS:
            self.assertIn(name, str(ctx.exception))

    def test_weights_to_dict(self):
        as_dict = weights_to_dict(self.policy.defaults)
        self.assertEqual(list(as_dict.keys()), [c.value for c in CATEGORY_ORDER])

    def test_normalize_fills_missing_categories(self):
        weights = normalize_weights({FactorCategory.SKILLS: 2.0})
        self.assertEqual(weights[FactorCategory.SKILLS], 1.0)
        self.assertEqual(weights[FactorCategory.CULTURE], 0.0)


def _factor(category, weight, raw, insufficient=False):
    return Factor(
        category=category, weight=weight, raw_score=raw,
        detail="", positive=raw >= 60, insufficient_data=insufficient
    )


class TestAggregation(unittest.TestCase):
    """Test weighted score and confidence."""

    def setUp(self):
        self.config = ScorerConfig()

    def test_weighted_score_rounds_and_clamps(self):
        factors = [
            _factor(FactorCategory.SKILLS, 0.5, 81.0),
            _factor(FactorCategory.EXPERIENCE, 0.5, 80.0),
        ]
        self.assertEqual(weighted_score(factors), 80)  # 80.5 rounds half to even
        self.assertEqual(weighted_score([_factor(FactorCategory.SKILLS, 1.0, 100.0)]), 100)
        self.assertEqual(weighted_score([]), 0)

    def test_confidence_full_agreement_and_data(self):
        factors = [_factor(c, 1 / 6, 70.0) for c in CATEGORY_ORDER]
        self.assertEqual(confidence(factors, self.config), 1.0)

    def test_confidence_drops_with_missing_data(self):
        complete = [_factor(c, 1 / 6, 70.0) for c in CATEGORY_ORDER]
        sparse = [_factor(c, 1 / 6, 70.0, insufficient=(i % 2 == 0)) for i, c in enumerate(CATEGORY_ORDER)]
        self.assertLess(confidence(sparse, self.config), confidence(complete, self.config))

    def test_confidence_drops_with_disagreement(self):
        agreeing = [_factor(c, 1 / 6, 60.0) for c in CATEGORY_ORDER]
        split = [_factor(c, 1 / 6, 100.0 if i % 2 else 0.0) for i, c in enumerate(CATEGORY_ORDER)]

        self.assertLess(confidence(split, self.config), confidence(agreeing, self.config))
        self.assertEqual(confidence(split, self.config), self.config.confidence_floor)

    def test_confidence_does_not_change_score(self):
        weights = WeightingPolicy().defaults
        scores = {c: FactorScore.bounded(70.0, "", self.config) for c in CATEGORY_ORDER}
        with_missing = dict(scores)
        with_missing[FactorCategory.CULTURE] = FactorScore(70.0, "", True, insufficient_data=True)

        score_a, conf_a, _ = aggregate(scores, weights, self.config)
        score_b, conf_b, _ = aggregate(with_missing, weights, self.config)

        self.assertEqual(score_a, score_b)
        self.assertGreater(conf_a, conf_b)

    def test_aggregate_orders_factors(self):
        weights = WeightingPolicy().defaults
        scores = {c: FactorScore.bounded(50.0, c.value, self.config) for c in reversed(CATEGORY_ORDER)}
        _, _, factors = aggregate(scores, weights, self.config)
        self.assertEqual([f.category for f in factors], CATEGORY_ORDER)

    def test_bounded_factor_score(self):
        self.assertEqual(FactorScore.bounded(123.456, "", self.config).score, 100.0)
        self.assertEqual(FactorScore.bounded(-3, "", self.config).score, 0.0)
        self.assertEqual(FactorScore.bounded(66.666, "", self.config).score, 66.67)


class TestScoringService(unittest.TestCase):
    """Test ScoringService orchestration and time bounds."""

    def setUp(self):
        self.config = ScorerConfig(scorer_timeout_seconds=0.2, scorer_threads=2)
        self.release = threading.Event()

    def tearDown(self):
        self.release.set()

    def _slow_scorer(self, candidate, job, config):
        self.release.wait(2.0)
        return FactorScore.bounded(100.0, "slow", config)

    def test_score_pair(self):
        service = ScoringService(ScorerConfig())
        try:
            scored = service.score_pair(make_candidate(), make_job(), WeightingPolicy().defaults)
        finally:
            service.shutdown()

        self.assertEqual(scored.candidate_id, "cand-1")
        self.assertEqual(scored.job_id, "job-1")
        self.assertEqual(scored.score, 86)
        self.assertEqual(len(scored.factors), len(CATEGORY_ORDER))
        self.assertAlmostEqual(sum(scored.weights.values()), 1.0, delta=1e-6)
        self.assertEqual(scored.reasons, [])

    def test_slow_scorer_times_out(self):
        service = ScoringService(self.config, scorers={FactorCategory.CULTURE: self._slow_scorer})
        try:
            started = time.monotonic()
            with self.assertRaises(ScorerTimeout) as ctx:
                service.score_pair(make_candidate(), make_job(), WeightingPolicy().defaults)
            self.assertLess(time.monotonic() - started, 1.5)
        finally:
            service.shutdown()

        self.assertEqual(ctx.exception.category, "culture")

    def test_pool_recovers_after_stuck_scorers(self):
        score_skills = DEFAULT_SCORERS[FactorCategory.SKILLS]

        def stuck_for_one_job(candidate, job, config):
            if job.id == "job-stuck":
                self.release.wait(5.0)
            return score_skills(candidate, job, config)

        service = ScoringService(self.config, scorers={FactorCategory.SKILLS: stuck_for_one_job})
        try:
            # More stuck scorers than scorer_threads
            for _ in range(self.config.scorer_threads + 1):
                with self.assertRaises(ScorerTimeout):
                    service.score_pair(make_candidate(), make_job("job-stuck"), WeightingPolicy().defaults)

            scored = service.score_pair(make_candidate(), make_job(), WeightingPolicy().defaults)
        finally:
            service.shutdown()

        self.assertEqual(scored.score, 86)

    def test_expired_deadline(self):
        service = ScoringService(self.config)
        try:
            with self.assertRaises(ScorerTimeout):
                service.score_pair(
                    make_candidate(), make_job(), WeightingPolicy().defaults,
                    deadline=time.monotonic() - 1
                )
        finally:
            service.shutdown()

    def test_custom_scorer_replaces_default(self):
        def fixed(candidate, job, config):
            return FactorScore.bounded(0.0, "fixed", config)

        service = ScoringService(ScorerConfig(), scorers={FactorCategory.SKILLS: fixed})
        try:
            scored = service.score_pair(make_candidate(), make_job(), WeightingPolicy().defaults)
        finally:
            service.shutdown()

        self.assertEqual(scored.factor(FactorCategory.SKILLS).detail, "fixed")
        self.assertTrue(math.isfinite(scored.confidence))


if __name__ == '__main__':
    unittest.main()
