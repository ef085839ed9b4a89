from pathlib import Path
from typing import Union

from sapodilla.config.config import Config
from sapodilla.config.io import ConfigReader, ConfigWriter


class FileReader(ConfigReader):
  encoding = "utf-8"

  def read(self, r: Union[str, Path]) -> Config:
    """Read the config file at `r`.

    Raises:
      FileNotFoundError: there is no file at `r`.
      ValueError: the file does not parse, or names a section other than `logging` and `link`.
    """

    with open(r, self.open_mode, encoding=self.encoding) as f:
      return self.format_loader.load(f)


class FileWriter(ConfigWriter):
  encoding = "utf-8"

  def write(self, w: Union[str, Path], cfg: Config):
    """Write `cfg` to the file at `w`, creating missing parent directories."""
    Path(w).parent.mkdir(parents=True, exist_ok=True)
    with open(w, self.open_mode, encoding=self.encoding) as f:
      self.format_saver.save(f, cfg)
