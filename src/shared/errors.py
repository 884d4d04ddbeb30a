"""Error taxonomy for the blog pipeline.

Precondition errors are raised before any external call is made and are
caller-fixable.  Stage errors wrap a failure from one pipeline stage with
enough context (stage name, draft id, underlying message) for a caller to
report which step failed and why.  Validation problems are never raised;
they are returned as data by the assembler.
"""

from __future__ import annotations


class BlogpipeError(Exception):
    """Base error for everything raised by blogpipe."""


class ConfigurationError(BlogpipeError):
    """Raised when required settings are missing at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing configuration: " + ", ".join(self.missing))


class StoreError(BlogpipeError):
    """Raised when the draft store cannot persist its snapshot."""


class DraftNotFoundError(BlogpipeError):
    """Raised when an operation targets a draft id that does not exist."""

    def __init__(self, draft_id: str) -> None:
        self.draft_id = draft_id
        super().__init__(f"Draft not found: {draft_id}")


class PreconditionError(BlogpipeError):
    """Raised when a stage is invoked before its inputs are ready."""


class OutlineError(BlogpipeError):
    """Raised when outline generation fails."""


class SectionWriteError(BlogpipeError):
    """Raised when drafting a single section fails."""

    def __init__(self, index: int, title: str, message: str) -> None:
        self.index = index
        self.title = title
        super().__init__(f"Section {index} ({title!r}) failed: {message}")


class PublishError(BlogpipeError):
    """Normalized failure from the external CMS.

    ``status`` is the HTTP status (``None`` for transport failures),
    ``hint`` a short remediation pointer keyed off the status and
    ``body`` the raw response body kept for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        hint: str | None = None,
        body: str = "",
    ) -> None:
        self.status = status
        self.hint = hint
        self.body = body
        super().__init__(message)


class StageError(BlogpipeError):
    """A pipeline stage failed for a specific draft."""

    def __init__(self, stage: str, draft_id: str | None, message: str) -> None:
        self.stage = stage
        self.draft_id = draft_id
        self.message = message
        target = f" for draft {draft_id}" if draft_id else ""
        super().__init__(f"{stage} failed{target}: {message}")
