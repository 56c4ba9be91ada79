from database.repositories.base import BaseRepository
from database.repositories.match import MatchRepository
from database.repositories.feedback import FeedbackRepository
from database.repositories.settings import SettingsRepository

__all__ = [
    'BaseRepository',
    'MatchRepository',
    'FeedbackRepository',
    'SettingsRepository',
]
