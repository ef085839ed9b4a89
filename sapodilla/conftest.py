import logging
from pathlib import Path

import pytest

import sapodilla
from sapodilla import Config, configure, project_root

# No port, so nothing under test can reach a real printer through a developer's sapodilla.ini.
TEST_CONFIG = Config(
  logging=Config.Logging(
    level=logging.DEBUG,
    log_dir=project_root() / Path("test_logs"),
  ),
  link=Config.Link(port=None, poll_interval=0.01, stale_package_timeout=1.0),
)


@pytest.fixture(autouse=True)
def setup_test_config(monkeypatch):
  monkeypatch.setattr(sapodilla, "CONFIG", TEST_CONFIG)
  configure(TEST_CONFIG)
  yield
