from .note import Note  # noqa: F401
from .revision import Revision  # noqa: F401
