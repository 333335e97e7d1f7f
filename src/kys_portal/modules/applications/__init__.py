"""
KYS Applications Module

Handles the "Know Your School" registration workflow:
1. Four-step registration wizard with drafts (basic info, contact and
   leadership, academic info, documents)
2. Submission, opening the country approval stage
3. Three sequential approval stages: country -> state -> local
4. Review queue and pipeline statistics for reviewers

API Endpoints:
- /applications/* - School admin wizard and tracking (router.py)
- /reviews/* - Reviewer queue and stage decisions (review_router.py)

Background Jobs (via APScheduler):
- purge_stale_drafts: Runs hourly, deletes abandoned drafts
"""

from .jobs import register_application_jobs
from .review_router import router as review_router
from .router import router

__all__ = ["router", "review_router", "register_application_jobs"]
