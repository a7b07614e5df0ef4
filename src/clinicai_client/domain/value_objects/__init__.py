"""
Value objects package for domain layer.
"""

from .job_key import JobKey

__all__ = [
    "JobKey",
]
