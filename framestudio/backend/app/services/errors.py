class BookingError(Exception):
    pass


class NotFoundError(BookingError):
    pass


class ConflictError(BookingError):
    pass


class InvalidRequestError(BookingError):
    pass


class PermissionDeniedError(BookingError):
    pass


__all__ = [
    "BookingError",
    "NotFoundError",
    "ConflictError",
    "InvalidRequestError",
    "PermissionDeniedError",
]
