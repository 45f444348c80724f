"""Structured error handling: pipeline exceptions, categories, and tool error model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    PROVIDER_UNSUPPORTED = "PROVIDER_UNSUPPORTED"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    PROBE_FAILED = "PROBE_FAILED"
    TRANSCODE_FAILED = "TRANSCODE_FAILED"
    POSTER_FAILED = "POSTER_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    FFMPEG_NOT_FOUND = "FFMPEG_NOT_FOUND"
    ENCODER_TIMEOUT = "ENCODER_TIMEOUT"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNKNOWN = "UNKNOWN"


class PipelineError(Exception):
    """Base class for failures that end a pipeline stage."""

    category = ErrorCategory.UNKNOWN


class GenerationError(PipelineError):
    """The provider rejected the request or never produced a video."""

    category = ErrorCategory.PROVIDER_REJECTED


class GenerationTimeoutError(GenerationError):
    """An async provider job did not finish within the polling window."""

    category = ErrorCategory.GENERATION_TIMEOUT


class DownloadError(PipelineError):
    """The generated asset could not be fetched to local staging."""

    category = ErrorCategory.DOWNLOAD_FAILED


class TranscodeError(PipelineError):
    """No rendition could be produced, or the source could not be probed."""

    category = ErrorCategory.TRANSCODE_FAILED


class PosterError(TranscodeError):
    """The poster frame is a required output and could not be extracted."""

    category = ErrorCategory.POSTER_FAILED


class UploadError(PipelineError):
    """At least one file of the output tree did not reach object storage."""

    category = ErrorCategory.UPLOAD_FAILED

    def __init__(self, message: str, failed_files: list[str] | None = None) -> None:
        self.failed_files = list(failed_files or [])
        super().__init__(message)


class InvalidTransitionError(PipelineError):
    """A job update would move its status backwards or out of a terminal state."""

    category = ErrorCategory.INVALID_TRANSITION


class JobNotFoundError(PipelineError):
    """No job with the given ID is registered."""

    category = ErrorCategory.JOB_NOT_FOUND

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class SubprocessError(Exception):
    """Raised when ffmpeg/ffprobe exits with a non-zero code."""

    def __init__(
        self,
        command: list[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command {' '.join(command)!r} exited with code {returncode}"
        )


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    s = str(error).lower()

    if isinstance(error, JobNotFoundError):
        return (
            ErrorCategory.JOB_NOT_FOUND,
            "Unknown job ID — jobs are kept in memory and removed by pipeline_cleanup",
        )
    if isinstance(error, SubprocessError):
        if error.returncode in (-9, -15):
            return (
                ErrorCategory.ENCODER_TIMEOUT,
                "Encoder was killed (timeout or OOM) — raise PIPELINE_ENCODE_TIMEOUT",
            )
        return (
            ErrorCategory.TRANSCODE_FAILED,
            f"ffmpeg exited with code {error.returncode} — check stderr in the server log",
        )
    if isinstance(error, PipelineError):
        if "exceeds maximum" in s:
            return (
                ErrorCategory.DURATION_EXCEEDED,
                "Requested duration is above the provider limit — see provider_info",
            )
        return (error.category, str(error))
    if isinstance(error, FileNotFoundError):
        if "ffmpeg" in s or "ffprobe" in s:
            return (
                ErrorCategory.FFMPEG_NOT_FOUND,
                "FFmpeg not found — install it or set FFMPEG_BINARY / FFPROBE_BINARY",
            )
        return (ErrorCategory.FILE_NOT_FOUND, "File not found — check the path")
    if "unsupported provider" in s:
        return (
            ErrorCategory.PROVIDER_UNSUPPORTED,
            "Unknown provider — use one of veo3, runway, pika, stable-video",
        )
    if "timeout" in s or "timed out" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or check connectivity",
        )
    if isinstance(error, ValueError):
        return (ErrorCategory.INVALID_ARGUMENT, str(error))

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.DOWNLOAD_FAILED,
        ErrorCategory.UPLOAD_FAILED,
        ErrorCategory.GENERATION_TIMEOUT,
    }
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=retryable,
    ).model_dump(mode="json")
