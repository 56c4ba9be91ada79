"""Analytics Module - feedback statistics and insights."""
from core.analytics.feedback_stats import (
    FeedbackStatsAggregator, StatsScheduler,
    MatchingStats, MatchingInsight, AlgorithmPerformance, ImprovementSuggestion,
    InsightType, Trend
)

__all__ = [
    'FeedbackStatsAggregator', 'StatsScheduler',
    'MatchingStats', 'MatchingInsight', 'AlgorithmPerformance', 'ImprovementSuggestion',
    'InsightType', 'Trend'
]
