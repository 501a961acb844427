#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Custom exceptions for the storysearch library.

This module defines specialized exception classes for the error conditions
that can occur while reading story content, maintaining the search index and
answering queries. Parsing the story markup itself never raises; malformed
lines are dropped instead.

Exception Hierarchy
-------------------
- StorySearchError (base exception)

  - ValidationError (rejected search options)

  - NotInstalledError (story content has not been fetched yet)

  - MalformedDataError (upstream JSON metadata cannot be decoded)

  - StoryNotFoundError (unknown story id)

  - FileError (filesystem failures)
    - StoryReadError (a story script could not be read)

  - SearchIndexError (full-text index problems)
    - IndexUnavailableError (index missing, empty or unopenable)
    - IndexQueryError (engine rejected or failed a query)

  - DependencyError (missing/incompatible optional packages)

"""

from typing import Any


class StorySearchError(Exception):
    """Root of the storysearch error hierarchy.

    Parameters
    ----------
    message : str
        Text shown to the user
    original_error : Exception, optional
        Lower-level exception being wrapped (OS, sqlite or decode error)

    """

    def __init__(self, message: str, original_error: Exception | None = None):
        """Store the message and the wrapped exception."""
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(StorySearchError):
    """Exception raised when a search option or backend name is rejected.

    Parameters
    ----------
    message : str
        What was wrong with the value
    parameter_name : str, optional
        Option or argument that carried it (e.g. "backend")
    parameter_value : any, optional
        Rejected value
    original_error : Exception, optional
        Error raised while checking the value

    """

    def __init__(
        self,
        message: str,
        parameter_name: str | None = None,
        parameter_value: Any = None,
        original_error: Exception | None = None,
    ):
        """Record which parameter was rejected."""
        super().__init__(message, original_error=original_error)
        self.parameter_name = parameter_name
        self.parameter_value = parameter_value


class NotInstalledError(StorySearchError):
    """Exception raised when story content has not been installed yet.

    Every read, listing, indexing and scanning operation checks for installed
    content first and raises this instead of a generic I/O error, so callers
    can tell "nothing downloaded yet" apart from a broken file.

    Parameters
    ----------
    data_dir : str, optional
        Directory that was expected to hold the content
    message : str, optional
        Custom error message

    """

    def __init__(self, data_dir: str | None = None, message: str | None = None):
        """Initialize the not-installed error."""
        if message is None:
            message = "Story content is not installed"
            if data_dir:
                message += f" (looked in {data_dir})"
        super().__init__(message)
        self.data_dir = data_dir


class MalformedDataError(StorySearchError):
    """Exception raised when upstream JSON metadata cannot be decoded.

    Only raised by operations that strictly require the record in question;
    best-effort paths skip unparseable entries instead.

    Parameters
    ----------
    message : str
        Description of the problem
    source : str, optional
        File or record the data came from
    original_error : Exception, optional
        The original decoding error

    """

    def __init__(self, message: str, source: str | None = None, original_error: Exception | None = None):
        """Initialize the malformed data error."""
        super().__init__(message, original_error=original_error)
        self.source = source


class StoryNotFoundError(StorySearchError):
    """Exception raised when a story id is not present in the catalog."""

    def __init__(self, story_id: str):
        """Initialize the error for the missing story id."""
        super().__init__(f"Story {story_id} does not exist")
        self.story_id = story_id


class FileError(StorySearchError):
    """Base exception for filesystem failures below the data directory.

    ``file_path`` holds the file that failed when it is known.
    """

    def __init__(self, message: str, file_path: str | None = None, original_error: Exception | None = None):
        """Record the failing file."""
        super().__init__(message, original_error=original_error)
        self.file_path = file_path


class StoryReadError(FileError):
    """Exception raised when a story script cannot be read.

    Bulk operations (index rebuild, fallback scan) log and skip the story;
    a direct single-story read surfaces this to the caller.

    Parameters
    ----------
    story_path : str
        The ``storyTxt`` reference that failed to resolve
    message : str, optional
        Custom error message
    file_path : str, optional
        Concrete file that failed, when known
    original_error : Exception, optional
        The underlying OS error

    """

    def __init__(
        self,
        story_path: str,
        message: str | None = None,
        file_path: str | None = None,
        original_error: Exception | None = None,
    ):
        """Initialize the story read error."""
        if message is None:
            message = f"Failed to read story file: {story_path}"
            if original_error is not None:
                message += f" ({original_error})"
        super().__init__(message, file_path=file_path, original_error=original_error)
        self.story_path = story_path


class SearchIndexError(StorySearchError):
    """Base exception for full-text index failures.

    The search orchestrator never lets these escape a query: it logs them and
    answers from the linear scan instead.
    """


class IndexUnavailableError(SearchIndexError):
    """Exception raised when the index cannot be opened or initialised."""


class IndexQueryError(SearchIndexError):
    """Exception raised when the index engine rejects or fails a query.

    Parameters
    ----------
    message : str
        Description of the failure
    expression : str, optional
        The compiled expression that was executed
    original_error : Exception, optional
        The engine error

    """

    def __init__(self, message: str, expression: str | None = None, original_error: Exception | None = None):
        """Initialize the query error with the offending expression."""
        super().__init__(message, original_error=original_error)
        self.expression = expression


# Feature name used with requires_dependencies -> storysearch extra that installs it
_FEATURE_EXTRAS = {"search_bm25": "bm25", "bm25": "bm25", "rich": "rich"}


class DependencyError(StorySearchError):
    """Exception raised when an optional backend's packages are missing or too old.

    The message names each package and ends with an install hint, the
    matching ``storysearch`` extra when there is one.

    Parameters
    ----------
    feature_name : str
        Feature that needs the packages (e.g. "search_bm25")
    missing_packages : list[tuple[str, str]]
        (distribution name, version spec) pairs that could not be imported
    version_mismatches : list[tuple[str, str, str]], optional
        (distribution name, required spec, installed version) triples
    install_command : str, optional
        Install hint used instead of the generated one
    message : str, optional
        Custom error message
    original_import_error : ImportError, optional
        First ImportError raised while probing the packages

    """

    def __init__(
        self,
        feature_name: str,
        missing_packages: list[tuple[str, str]],
        version_mismatches: list[tuple[str, str, str]] | None = None,
        install_command: str = "",
        message: str | None = None,
        original_import_error: ImportError | None = None,
    ):
        """Initialize the dependency error and build its install hint."""
        self.feature_name = feature_name
        self.missing_packages = list(missing_packages)
        self.version_mismatches = list(version_mismatches or [])
        self.original_import_error = original_import_error
        self.install_command = install_command or self._default_install_command()
        super().__init__(message or self._describe(), original_error=original_import_error)

    def _default_install_command(self) -> str:
        extra = _FEATURE_EXTRAS.get(self.feature_name)
        if extra:
            return f"pip install 'storysearch[{extra}]'"
        requirements = [f"{name}{spec}" for name, spec in self.missing_packages]
        requirements.extend(f"{name}{required}" for name, required, _ in self.version_mismatches)
        if not requirements:
            return ""
        return "pip install --upgrade " + " ".join(f'"{requirement}"' for requirement in requirements)

    def _describe(self) -> str:
        lines = []
        if self.missing_packages:
            names = ", ".join(f"{name}{spec}" for name, spec in self.missing_packages)
            lines.append(f"{self.feature_name} needs packages that are not installed: {names}")
        for name, required, installed in self.version_mismatches:
            lines.append(f"{self.feature_name} needs {name}{required}, but {installed} is installed")
        if self.install_command:
            lines.append(f"Install with: {self.install_command}")
        return "\n".join(lines)
