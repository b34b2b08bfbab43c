class SyncError(Exception):
    """Base error raised out of a sync cycle."""


class PermissionDeniedError(SyncError):
    """The message source refused access. Needs the user to grant access before retrying."""


class TransientSyncError(SyncError):
    """Fetch or store failure. The checkpoint is left alone so the next sync retries the window."""


class MessageSourceError(TransientSyncError):
    pass


class StoreError(TransientSyncError):
    pass


class AIServiceError(Exception):
    """Remote text generation failed or returned nothing usable."""


class ApiKeyMissingError(AIServiceError):
    pass
