"""
Exception types raised by pbxgraph.

Load errors derive from DocumentError and carry the path of the offending
document so batch tools can tell which project failed. Argument and
precondition errors also derive from ValueError so callers that already
catch ValueError keep working.
"""
from typing import Optional, Union
from pathlib import Path


class PbxGraphError(Exception):
    """Base class for every error raised by pbxgraph."""


class DocumentError(PbxGraphError):
    """A project document could not be loaded."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = str(path) if path is not None else None
        self.detail = message
        if self.path:
            message = f"[{self.path}] {message}"
        super().__init__(message)


class MalformedDocument(DocumentError):
    """Unparseable text or a structurally invalid top-level shape."""


class MergeConflictDetected(DocumentError):
    """Version-control conflict markers were found before parsing."""


class DanglingReference(DocumentError):
    """An attribute names a uuid that is absent from `objects`."""

    def __init__(
        self,
        uuid: str,
        owner: str,
        attribute: str,
        path: Optional[Union[str, Path]] = None,
    ):
        self.uuid = uuid
        self.owner = owner
        self.attribute = attribute
        super().__init__(
            f"object {owner} references unknown object {uuid} via `{attribute}`",
            path,
        )


class InvalidArgument(PbxGraphError, ValueError):
    """An argument does not satisfy the operation's contract."""


class NotApplicable(PbxGraphError, ValueError):
    """A query was invoked on a node that does not satisfy its precondition."""
