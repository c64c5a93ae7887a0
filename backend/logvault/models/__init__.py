from .base import Base
from .config import ConfigRecord
from .logs import LogRecord
from .notifications import Notification
from .users import User

__all__ = ["Base", "ConfigRecord", "LogRecord", "Notification", "User"]
