from __future__ import annotations


class BookMapError(RuntimeError):
    pass


class InvalidIdentifier(BookMapError, ValueError):
    def __init__(self, raw: str, reason: str = "") -> None:
        msg = reason or "identifier must be 10 or 13 characters after cleanup"
        super().__init__(f"invalid identifier {raw!r}: {msg}")
        self.raw = raw


class ProviderUnavailable(BookMapError):
    def __init__(self, label: str, message: str) -> None:
        super().__init__(f"{label}: {message}")
        self.label = label


class ParseFailure(ProviderUnavailable):
    def __init__(self, label: str, message: str, body_preview: str = "") -> None:
        super().__init__(label, message)
        self.body_preview = body_preview


class MissingConfiguration(BookMapError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing {name} (set in .env or environment).")
        self.name = name
