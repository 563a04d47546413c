class AcademicsError(Exception):
    """Base class for errors raised by the session and attendance routines."""


class MissingScheduleError(AcademicsError):
    """A class has no schedule or no semester, so no sessions can be generated."""


class StudentNotFoundError(AcademicsError):
    """A scanned code does not match any student."""

    def __init__(self, code):
        super().__init__(f"No student matches code {code!r}.")
        self.code = code


class CrossClassMismatchError(AcademicsError):
    """An attendance record would join a session and an enrollment from different classes."""
