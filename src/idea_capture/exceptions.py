"""Exception types for capture and export"""


class IdeaCaptureError(Exception):
    """Base class for all Idea Capture errors"""


class ConfigurationError(IdeaCaptureError):
    """Raised when settings are missing or invalid"""


# Capture

class CaptureError(IdeaCaptureError):
    """Fatal to the current capture attempt"""


class PermissionDenied(CaptureError):
    """The microphone permission was refused"""


class DeviceUnavailable(CaptureError):
    """No usable input device, or the device ended unexpectedly"""


class AcquisitionRaceDiscarded(IdeaCaptureError):
    """A gesture too short to capture audio. Internal signal, never shown to the user."""


# Export

class ExportError(IdeaCaptureError):
    """Base class for export pipeline errors surfaced to the caller"""


class EmptyContent(ExportError):
    """There is nothing to export"""


class BudgetExceeded(ExportError):
    """The artifact does not fit the destination's size budget"""

    def __init__(self, artifact, message: str = ""):
        self.artifact = artifact
        super().__init__(
            message
            or f"Content too long for destination ({artifact.encoded_length} > {artifact.budget})"
        )


class SummarizationFailed(ExportError):
    """The summarization collaborator failed"""


class DeliveryFailed(ExportError):
    """The destination sink could not deliver the artifact"""


class EnrichmentFailed(IdeaCaptureError):
    """The enrichment collaborator failed. Recovered inside the pipeline."""


class EnrichmentTimeout(EnrichmentFailed):
    """The enrichment collaborator did not answer in time"""


class AssistantError(IdeaCaptureError):
    """The conversational assistant could not produce a reply"""
