import json
from typing import IO

from sapodilla.config.config import Config
from sapodilla.config.formats import ConfigLoader, ConfigSaver


class JsonLoader(ConfigLoader):
  """Loads `sapodilla.json`: an object with optional `logging` and `link` members.

  Values keep their JSON types, so `terminal_id` may be written as a number or left `null`.
  """

  extension = "json"

  def load(self, r: IO) -> Config:
    config_dict = json.loads(r.read())
    if not isinstance(config_dict, dict):
      raise ValueError("JSON config must be an object")
    for name, section in config_dict.items():
      if not isinstance(section, dict):
        raise ValueError(f"config section '{name}' must be an object")
    return Config.from_dict(config_dict)


class JsonSaver(ConfigSaver):
  extension = "json"

  def save(self, w: IO, cfg: Config):
    json.dump(cfg.as_dict, w, indent=2)
