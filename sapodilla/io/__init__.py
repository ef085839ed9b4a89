from .binary import Reader, Writer
from .io import LOG_LEVEL_IO, IOBase
from .serial import Serial
