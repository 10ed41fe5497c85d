"""Error taxonomy for the conversion engine.

Per-file problems are `ConversionError` subclasses; they always end with the
owning file in the FAILED state and never abort sibling files. Settings and
pool errors are raised to the caller directly.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import MediaFile


class BacError(Exception):
    """Base class for all errors raised by bac."""


class InvalidSettingsError(BacError, ValueError):
    """A settings value is outside the allowed options for the chosen format."""


class PoolStartError(BacError):
    """The worker pool (or the encoder it depends on) could not be started."""


class ConversionError(BacError):
    """A single file could not be converted."""

    default_message = "The file could not be converted."

    def __init__(self, message: str = "", *, media_file: Optional["MediaFile"] = None) -> None:
        super().__init__(message or self.default_message)
        self.media_file = media_file

    @property
    def user_message(self) -> str:
        name = self.media_file.display_name if self.media_file is not None else None
        if name:
            return f"{name}: {self.default_message}"
        return self.default_message


class UnsupportedFormatError(ConversionError):
    default_message = "This file type is not supported or the file no longer exists."


class InvalidOutputPathError(ConversionError):
    default_message = "The output folder cannot be written to."


class EncoderProcessError(ConversionError):
    """The encoder could not be launched or exited with a non-zero status."""

    default_message = "The encoder failed while converting this file."

    def __init__(
        self,
        message: str = "",
        *,
        media_file: Optional["MediaFile"] = None,
        returncode: Optional[int] = None,
        diagnostics: str = "",
    ) -> None:
        super().__init__(message, media_file=media_file)
        self.returncode = returncode
        self.diagnostics = diagnostics

    @property
    def user_message(self) -> str:
        base = super().user_message
        if self.diagnostics:
            last = self.diagnostics.strip().splitlines()[-1]
            return f"{base}\n{last}"
        return base


class OutputVerificationError(ConversionError):
    default_message = "The encoder finished but produced no usable output file."


class UnexpectedError(ConversionError):
    default_message = "An unexpected error occurred."

    def __init__(
        self,
        message: str = "",
        *,
        media_file: Optional["MediaFile"] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message or (str(cause) if cause else ""), media_file=media_file)
        self.cause = cause
