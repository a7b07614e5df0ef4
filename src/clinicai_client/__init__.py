"""
Clinic-AI client: transcription job polling and workflow step resolution

An asyncio client for the Clinic-AI backend that submits consultation audio,
follows the transcription job to a terminal outcome with adaptive backoff,
and tells callers which workflow steps are currently available for a visit.
"""

__version__ = "0.1.0"
__author__ = "Clinic-AI Team"
__description__ = "Client for Clinic-AI transcription polling and workflow steps"

from .client import ClinicAIClient
from .core.config import Settings, get_settings
from .domain.value_objects.job_key import JobKey

__all__ = ["ClinicAIClient", "JobKey", "Settings", "get_settings"]
