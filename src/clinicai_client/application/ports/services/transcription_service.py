"""
Transcription service interfaces used by the polling use case.
"""

from abc import ABC, abstractmethod

from ....domain.entities.job import StatusCheck
from ....domain.value_objects.job_key import JobKey
from ...dto.transcription_dto import (
    FetchResult,
    StructuredDialogue,
    SubmitTranscriptionRequest,
    SubmitTranscriptionResponse,
)


class JobSubmissionService(ABC):
    """Abstract service for submitting transcription jobs."""

    @abstractmethod
    async def submit(
        self, key: JobKey, request: SubmitTranscriptionRequest
    ) -> SubmitTranscriptionResponse:
        """
        Upload audio for a (subject, visit) pair.

        Raises:
            SubmissionError: the backend rejected the upload
            TransportError: no response was received
        """
        pass


class JobStatusService(ABC):
    """Abstract single-shot status query."""

    @abstractmethod
    async def check(self, key: JobKey) -> StatusCheck:
        """
        Query the job once and normalize the response.

        Never raises for backend or transport failures; those are reported as
        a failed StatusCheck carrying the error.
        """
        pass


class ResultService(ABC):
    """Abstract transcript retrieval."""

    @abstractmethod
    async def fetch(self, key: JobKey) -> FetchResult:
        """
        Retrieve the produced transcript.

        Raises:
            ServerError, ParseError, TransportError
        """
        pass


class DialogueStructuringService(ABC):
    """Abstract enrichment turning a raw transcript into role-tagged dialogue."""

    @abstractmethod
    async def structure(self, key: JobKey) -> StructuredDialogue:
        """
        Ask the backend to structure the stored transcript.

        Raises:
            EnrichmentError: on any failure
        """
        pass
