from __future__ import annotations


class StreakifyError(Exception):
    pass


class NotFoundError(StreakifyError, LookupError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class StorageUnavailable(StreakifyError):
    pass


class MalformedImport(StreakifyError, ValueError):
    pass


class ValidationError(StreakifyError, ValueError):
    pass


class LocalWriteFailed(StreakifyError):
    pass
