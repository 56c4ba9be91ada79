from .base import Base
from .match import MatchRecord
from .feedback import FeedbackRecord
from .settings import AppSettings

__all__ = [
    'Base',
    'MatchRecord',
    'FeedbackRecord',
    'AppSettings',
]
