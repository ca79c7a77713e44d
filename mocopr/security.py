"""Security validation for URIs, paths and inputs, and retry handling."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import urlsplit
from urllib.request import url2pathname

from .errors import (
    InvalidParamsError,
    McpError,
    MethodNotFoundError,
    NotFoundError,
    OperationFailedError,
    ResourceError,
    SecurityError,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_ALLOWED_CONTROL = frozenset("\t\n\r")


def _default_extensions() -> list[str]:
    return ["txt", "md", "json", "yml", "yaml", "xml", "csv", "log"]


def _file_uri_path(uri: str) -> Optional[Path]:
    """The local path of a file URI, or None if it names no local file."""
    parts = urlsplit(uri)
    if parts.netloc not in ("", "localhost"):
        return None
    if not parts.path:
        return None
    return Path(url2pathname(parts.path))


@dataclass
class SecurityValidator:
    """Checks URIs, file paths, sizes and strings before they are used."""

    allowed_schemes: list[str] = field(default_factory=lambda: ["file", "http", "https"])
    max_file_size: int = 10 * 1024 * 1024
    allowed_extensions: list[str] = field(default_factory=_default_extensions)
    root_directory: Optional[Path] = None

    def with_allowed_schemes(self, schemes: Iterable[str]) -> SecurityValidator:
        return replace(self, allowed_schemes=list(schemes))

    def with_max_file_size(self, size: int) -> SecurityValidator:
        return replace(self, max_file_size=size)

    def with_allowed_extensions(self, extensions: Iterable[str]) -> SecurityValidator:
        return replace(self, allowed_extensions=list(extensions))

    def with_root_directory(self, root: PathLike) -> SecurityValidator:
        return replace(self, root_directory=Path(root))

    def validate_uri(self, uri: str) -> None:
        """Raise SecurityError unless the URI scheme (and file path) is allowed."""
        scheme = urlsplit(uri).scheme
        if scheme not in self.allowed_schemes:
            raise SecurityError(
                f"URI scheme '{scheme}' is not allowed. "
                f"Allowed schemes: {self.allowed_schemes}"
            )
        if scheme == "file":
            path = _file_uri_path(uri)
            if path is not None:
                self.validate_file_path(path)

    def validate_file_path(self, path: PathLike) -> None:
        """Raise SecurityError if the path escapes the root or has a bad extension."""
        path = Path(path)

        if self.root_directory is not None:
            try:
                canonical_root = self.root_directory.resolve(strict=True)
            except OSError as exc:
                raise SecurityError(
                    f"Failed to canonicalize root directory: {exc}"
                ) from exc
            try:
                canonical_path = path.resolve(strict=True)
            except OSError as exc:
                raise SecurityError(f"Failed to canonicalize file path: {exc}") from exc
            if not canonical_path.is_relative_to(canonical_root):
                raise SecurityError(
                    f"Path '{canonical_path}' is outside of allowed directory "
                    f"'{canonical_root}'"
                )

        if path.suffix:
            extension = path.suffix[1:].lower()
            if extension not in self.allowed_extensions:
                logger.warning(
                    "File extension '%s' is not in allowed list: %s",
                    extension,
                    self.allowed_extensions,
                )
                raise SecurityError(
                    f"File extension '{extension}' is not allowed. "
                    f"Allowed extensions: {self.allowed_extensions}"
                )

    def validate_file_size(self, size: int) -> None:
        """Raise SecurityError if size exceeds the configured maximum."""
        if size > self.max_file_size:
            raise SecurityError(
                f"File size {size} exceeds maximum allowed size {self.max_file_size}"
            )

    def validate_string_input(self, text: str) -> None:
        """Raise SecurityError if the text holds unsafe control characters."""
        for char in text:
            code = ord(char)
            if (code < 32 and char not in _ALLOWED_CONTROL) or code == 127:
                raise SecurityError(
                    f"Input contains unsafe control character U+{code:04X}"
                )

    def validate_resource_access(self, uri: str) -> None:
        """Validate the URI and, for local files, their existence and size."""
        self.validate_uri(uri)
        if urlsplit(uri).scheme != "file":
            return
        path = _file_uri_path(uri)
        if path is None:
            return
        if not path.exists():
            raise NotFoundError(f"File does not exist: {path}")
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise SecurityError(f"Cannot read file metadata: {path}") from exc
        self.validate_file_size(size)

    def validate_tool_parameters(self, params: Any) -> None:
        """Check every string, key included, in a JSON value."""
        if isinstance(params, str):
            self.validate_string_input(params)
        elif isinstance(params, dict):
            for key, value in params.items():
                self.validate_string_input(str(key))
                self.validate_tool_parameters(value)
        elif isinstance(params, list):
            for value in params:
                self.validate_tool_parameters(value)


@dataclass
class ErrorRecoverySystem:
    """Retries failing operations and builds friendly protocol errors."""

    max_retries: int = 3
    retry_delay_ms: int = 1000
    log_errors: bool = True

    async def execute_with_retry(self, operation: Callable[[], Any]) -> Any:
        """Call the operation until it succeeds or max_retries attempts fail.

        The operation may be a plain function or return an awaitable.
        """
        attempts = 0
        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as exc:
                attempts += 1
                if self.log_errors:
                    logger.warning(
                        "Operation failed (attempt %d/%d): %s",
                        attempts,
                        self.max_retries,
                        exc,
                    )
                if attempts >= self.max_retries:
                    raise OperationFailedError(
                        f"Operation failed after {self.max_retries} attempts: {exc}"
                    ) from exc
                await asyncio.sleep(self.retry_delay_ms / 1000)

    def handle_invalid_method(self, method: str) -> McpError:
        if self.log_errors:
            logger.warning("Invalid method called: %s", method)
        return MethodNotFoundError(
            f"Method '{method}' is not supported. "
            "Available methods should be checked through capability negotiation."
        )

    def handle_invalid_parameters(self, method: str, error: str) -> McpError:
        if self.log_errors:
            logger.warning("Invalid parameters for method '%s': %s", method, error)
        return InvalidParamsError(
            f"Invalid parameters for method '{method}': {error}. "
            "Please check the method signature and required parameters."
        )

    def handle_resource_error(self, uri: str, error: str) -> McpError:
        if self.log_errors:
            logger.warning("Resource access error for '%s': %s", uri, error)
        return ResourceError(
            f"Failed to access resource '{uri}': {error}. "
            "Please check the resource exists and is accessible."
        )