class IngestError(RuntimeError):
    """Base for failures that abort a list upload. Nothing is persisted when one is raised."""


class ParseError(IngestError):
    """File is malformed, has an unsupported extension, or lacks a required column."""


class ValidationError(IngestError):
    """File parsed but no row survived normalization."""


class NoAgentsError(IngestError):
    """Distribution attempted with an empty agent roster."""


class PersistenceError(IngestError):
    """Batch insert failed; the whole batch was rolled back."""


class FileTooLargeError(IngestError):
    """Upload exceeds the configured size limit; rejected before parsing."""
