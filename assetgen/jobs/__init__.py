"""
Job Record & State Machine
"""

from .models import Job, JobEvent, JobStatus, JobType
from .store import JobStore
from . import state_machine

__all__ = [
    'Job',
    'JobEvent',
    'JobStatus',
    'JobType',
    'JobStore',
    'state_machine',
]
