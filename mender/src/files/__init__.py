"""Script storage and discovery."""
from mender.src.files.file_handler import (
    FileHandler,
    LocalFileHandler,
    NoOpFileHandler,
    find_managed_tests,
    is_managed_test_file,
)

__all__ = [
    "FileHandler",
    "LocalFileHandler",
    "NoOpFileHandler",
    "find_managed_tests",
    "is_managed_test_file",
]
