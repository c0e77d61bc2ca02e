class ChatError(Exception):
    pass


class ValidationError(ChatError):
    pass


class NotFoundError(ChatError):
    pass


class ConflictError(ChatError):
    pass


class StorageError(ChatError):
    pass


class TurnInProgressError(ChatError):
    pass
