"""Exception types raised by the cinema scheduler."""


class SchedulerError(Exception):
    """Base exception for scheduler operations"""
    pass


class InsufficientStaffError(SchedulerError):
    """Raised when a cinema has too few staff to generate a schedule"""

    def __init__(self, cinema_id: str, staff_count: int, required: int):
        self.cinema_id = cinema_id
        self.staff_count = staff_count
        self.required = required
        super().__init__(
            f"Cinema {cinema_id} has {staff_count} staff; at least {required} are required"
        )


class ConfigurationError(SchedulerError):
    """Raised when scheduler settings are invalid or unreadable"""
    pass


class RosterFileError(SchedulerError):
    """Raised when a roster file cannot be read or is malformed"""
    pass
