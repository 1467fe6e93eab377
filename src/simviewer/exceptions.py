"""simviewer exceptions."""


class SimViewerError(Exception):
    """Base exception for simviewer."""


class FetchError(SimViewerError):
    """Raised when a remote store query fails."""

    def __init__(self, resource_id: str, stage: str, detail: str = ""):
        self.resource_id = resource_id
        self.stage = stage
        message = f"{stage} query failed for {resource_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NotFoundError(FetchError):
    """Raised when a required folder, item or file does not exist."""

    def __init__(self, resource_id: str, stage: str, detail: str = ""):
        super().__init__(resource_id, stage, detail or "not found")


class ParseError(SimViewerError):
    """Raised when a buffer is not a valid VTK XML document of the expected type."""

    def __init__(self, message: str, kind: str | None = None):
        self.kind = kind
        if kind:
            message = f"Could not load {kind} data: {message}"
        super().__init__(message)
