"""
Job runners for the campaigns feature.
"""

from .campaign_scheduler_job import run_campaign_scheduler_once, start_campaign_scheduler

__all__ = ["run_campaign_scheduler_once", "start_campaign_scheduler"]
