"""
Repository subpackage for the campaigns feature.
"""

from .campaign_repository import CampaignRepository

__all__ = ["CampaignRepository"]
