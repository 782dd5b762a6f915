"""
Story pipeline errors
"""


class StoryPipelineError(Exception):
    """Base class for failures that abort a story generation request"""


class GenerationError(StoryPipelineError):
    """Text or image generation returned nothing or failed upstream"""


class UploadError(StoryPipelineError):
    """Image hosting upload failed after all retry attempts"""


class MisalignedStoryError(StoryPipelineError):
    """Paragraph and illustration counts differ; the story must not be saved"""


class UnknownStyleError(ValueError):
    """Requested art style has no registered template"""
