"""
Job runners for the lead scoring feature.
"""

from .rescore_job import LeadRescoreJob, lead_rescore_job, start_lead_rescore_scheduler

__all__ = ["LeadRescoreJob", "lead_rescore_job", "start_lead_rescore_scheduler"]
