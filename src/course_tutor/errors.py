"""Exception types shared across the tutor."""


class TutorError(Exception):
    """Base class for every error the tutor raises on purpose."""


class InvalidState(TutorError):
    """An operation was called before its preconditions were met."""


class InvalidIndex(TutorError, IndexError):
    """A topic or question index is outside the catalog."""


class StorageError(TutorError):
    """The database could not be read or written."""


class CourseLoadError(TutorError):
    """The course file is missing, empty or malformed."""


class ConfigError(TutorError):
    """The settings file holds values the tutor cannot use."""
