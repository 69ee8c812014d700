class FileShelfError(Exception):
    """Base class for errors raised by the file-operation layer."""


class InitializationFailure(FileShelfError):
    """A store could not be prepared for use.

    Carries the same title/message/hints triple the S3 connection check
    reports, so the caller can log an actionable explanation.
    """

    def __init__(self, title: str, message: str, hints: list[str] | None = None):
        super().__init__(f"{title}: {message}")
        self.title = title
        self.message = message
        self.hints = hints or []

    def describe(self) -> str:
        lines = [f"{self.title}: {self.message}"]
        lines.extend(f"  - {hint}" for hint in self.hints)
        return "\n".join(lines)


class ListError(FileShelfError):
    """Enumerating the store root failed."""


class NotFoundError(FileShelfError):
    """The requested item does not exist in the active store."""

    def __init__(self, name: str):
        super().__init__(f"File not found: {name}")
        self.name = name


class StorageIOError(FileShelfError):
    """Reading or deleting an existing item failed."""

    def __init__(self, name: str, message: str):
        super().__init__(f"{name}: {message}")
        self.name = name
        self.message = message
