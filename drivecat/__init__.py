"""drivecat - A catalog of files on offline storage drives."""

__version__ = "0.1.0"

from drivecat.database import Database
from drivecat.scanner import Scanner

__all__ = ["Database", "Scanner"]
