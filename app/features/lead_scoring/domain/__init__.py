"""
Domain subpackage for the lead scoring feature.
"""

from .models import ContactAttributes, EngagementEvent, ScoreRecord

__all__ = [
    "ContactAttributes",
    "EngagementEvent",
    "ScoreRecord",
]
