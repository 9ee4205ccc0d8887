"""
Publication component - forced publish and engagement stats.
"""

from .component import PublicationRecorder
from .models import METRIC_FIELDS, PUBLISHED_MESSAGE, PublishResult

__all__ = [
    "PublicationRecorder",
    "PublishResult",
    "METRIC_FIELDS",
    "PUBLISHED_MESSAGE",
]
