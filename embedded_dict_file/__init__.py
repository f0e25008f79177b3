"""
embedded_dict_file: a dict persisted as one line per entry in a text file.
"""
from .dictionary import DictionaryFile, StrDictionaryFile
from .serialization import (
    BOOL,
    FLOAT,
    INT,
    JSON,
    STR,
    SerializationSettings,
    TypeSerializer,
)
from .storage import LineFile
from .errors import (
    DictionaryFileError,
    DecodeError,
    EncodeError,
    DuplicateKeyError,
    KeyNotFoundError,
    UseAfterDisposeError,
    StoreLockedError,
)

__version__ = "0.1.0"
__all__ = [
    "DictionaryFile",
    "StrDictionaryFile",
    "SerializationSettings",
    "TypeSerializer",
    "STR",
    "INT",
    "FLOAT",
    "BOOL",
    "JSON",
    "LineFile",
    "DictionaryFileError",
    "DecodeError",
    "EncodeError",
    "DuplicateKeyError",
    "KeyNotFoundError",
    "UseAfterDisposeError",
    "StoreLockedError",
]
