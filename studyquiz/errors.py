# studyquiz/errors.py


class StudyQuizError(Exception):
    """Base class for every error raised inside the service."""


class ValidationError(StudyQuizError):
    """Missing or malformed request input. Surfaced to the caller as a 400."""


#  AI related failures: always absorbed by the fallback path

class GenerationError(StudyQuizError):
    kind = "generation"


class ServiceError(GenerationError):
    """Non-success HTTP status (or transport failure) from the AI endpoint."""
    kind = "service"

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(GenerationError):
    """Success status, but no candidates[0].content.parts[0].text in the body."""
    kind = "malformed_response"


class ExtractionError(GenerationError):
    """No JSON-looking substring in the AI text."""
    kind = "extraction"


class ParseError(GenerationError):
    """A JSON-looking substring was found but json.loads rejected it."""
    kind = "parse"
