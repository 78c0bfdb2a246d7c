class BookingError(Exception):
    """Base error for slot booking operations."""


class NotFoundError(BookingError):
    pass


class SlotFullError(BookingError):
    pass


class NoBalanceError(BookingError):
    pass
