import configparser
from typing import IO

from sapodilla.config.config import Config
from sapodilla.config.formats import ConfigLoader, ConfigSaver


class IniLoader(ConfigLoader):
  """Loads `sapodilla.ini` with `[logging]` and `[link]` sections.

  Every INI value is a string; `Config.from_dict` converts them. An empty value, e.g. `port =`,
  means unset.
  """

  extension = "ini"

  def load(self, r: IO) -> Config:
    config = configparser.ConfigParser()
    try:
      config.read_file(r)
    except configparser.Error as e:
      raise ValueError(str(e)) from e
    if not config.sections():
      raise ValueError("INI config has no sections")
    return Config.from_dict({section: dict(config[section]) for section in config.sections()})


class IniSaver(ConfigSaver):
  """Writes a config as INI. Unset values (no port, no fixed terminal id) are left out."""

  extension = "ini"

  def save(self, w: IO, cfg: Config):
    config = configparser.ConfigParser()
    for section, values in cfg.as_dict.items():
      config[section] = {key: str(value) for key, value in values.items() if value is not None}

    config.write(w)
    return w
