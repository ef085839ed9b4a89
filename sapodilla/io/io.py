import logging
from abc import ABC, abstractmethod

# Raw bytes on the wire are logged below DEBUG so they can be enabled separately.
LOG_LEVEL_IO = 5
logging.addLevelName(LOG_LEVEL_IO, "IO")


class IOBase(ABC):
  @abstractmethod
  async def setup(self):
    pass

  @abstractmethod
  async def stop(self):
    pass

  @abstractmethod
  async def write(self, data: bytes, *args, **kwargs):
    pass

  @abstractmethod
  async def read(self, *args, **kwargs) -> bytes:
    pass

  def serialize(self):
    return {}
