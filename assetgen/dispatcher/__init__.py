"""
Job Dispatch & Reporting
"""

from .callback import send_job_callback
from .dispatcher import Dispatcher
from .reporter import MetricsReporter, StageStats

__all__ = [
    'Dispatcher',
    'MetricsReporter',
    'StageStats',
    'send_job_callback',
]
