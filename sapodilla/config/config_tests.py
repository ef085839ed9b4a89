import io
import logging
import tempfile
import unittest
from pathlib import Path

from sapodilla.config import get_config_file, load_config
from sapodilla.config.config import Config
from sapodilla.config.formats import ConfigLoader, ConfigSaver, MultiLoader
from sapodilla.config.formats.ini_config import IniLoader, IniSaver
from sapodilla.config.formats.json_config import JsonLoader, JsonSaver
from sapodilla.config.io.file import FileReader, FileWriter


class ConfigTests(unittest.TestCase):
  """ Tests for sapodilla.config """

  def run_file_reader_writer_test(
    self,
    format_loader: ConfigLoader,
    format_saver: ConfigSaver,
    write_to: Path,
    should_be: Config,
  ):
    writer = FileWriter(format_saver=format_saver)
    writer.write(write_to, should_be)
    reader = FileReader(format_loader=format_loader)
    cfg = reader.read(write_to)
    self.assertEqual(cfg, should_be)

  def test_file_reader_writer(self):
    tmp_path = Path(tempfile.mkdtemp())
    fake_config = Config(
      logging=Config.Logging(level=logging.DEBUG, log_dir=tmp_path / "logs"),
      link=Config.Link(port="/dev/rfcomm0", terminal_id=649, poll_interval=0.5),
    )
    cases = (
      (IniLoader(), IniSaver(), "fake_config.ini"),
      (JsonLoader(), JsonSaver(), "fake_config.json"),
    )
    for rdr, wr, fp in cases:
      self.run_file_reader_writer_test(rdr, wr, tmp_path / fp, fake_config)

  def test_defaults_survive_round_trip(self):
    buf = io.StringIO()
    IniSaver().save(buf, Config())
    buf.seek(0)
    self.assertEqual(IniLoader().load(buf), Config())

  def test_multi_loader_reads_json(self):
    buf = io.StringIO('{"logging": {"level": "WARNING"}, "link": {"port": "COM4"}}')
    cfg = MultiLoader([IniLoader(), JsonLoader()]).load(buf)
    self.assertEqual(cfg.logging.level, logging.WARNING)
    self.assertEqual(cfg.link.port, "COM4")
    self.assertEqual(cfg.link.baudrate, 9600)

  def test_multi_loader_rejects_garbage(self):
    with self.assertRaises(ValueError):
      MultiLoader([IniLoader(), JsonLoader()]).load(io.StringIO("not a config"))

  def test_unknown_section_rejected(self):
    with self.assertRaises(ValueError) as ctx:
      IniLoader().load(io.StringIO("[link]\nport = COM4\n\n[lnik]\nbaudrate = 115200\n"))
    self.assertIn("lnik", str(ctx.exception))
    with self.assertRaises(ValueError):
      JsonLoader().load(io.StringIO('{"link": {}, "printer": {}}'))

  def test_json_section_must_be_object(self):
    with self.assertRaises(ValueError):
      JsonLoader().load(io.StringIO('{"link": "COM4"}'))

  def test_unset_values_left_out_of_ini(self):
    buf = io.StringIO()
    IniSaver().save(buf, Config())
    self.assertNotIn("port", buf.getvalue())
    self.assertNotIn("terminal_id", buf.getvalue())
    self.assertIn("[link]", buf.getvalue())

  def test_file_writer_creates_directories(self):
    path = Path(tempfile.mkdtemp()) / "printers" / "studio" / "sapodilla.json"
    FileWriter(format_saver=JsonSaver()).write(path, Config(link=Config.Link(port="COM4")))
    self.assertEqual(FileReader(format_loader=JsonLoader()).read(path).link.port, "COM4")

  def test_get_config_file_searches_parents(self):
    root = Path(tempfile.mkdtemp())
    nested = root / "a" / "b"
    nested.mkdir(parents=True)
    (root / "sapodilla_test_cfg.json").write_text("{}", encoding="utf-8")
    self.assertEqual(get_config_file("sapodilla_test_cfg", nested), root / "sapodilla_test_cfg.json")

  def test_load_config_creates_default(self):
    cwd = Path.cwd()
    test_path = cwd / "test_config.ini"
    if test_path.exists():
      test_path.unlink()
    cfg = load_config("test_config", create_default=True, create_module_level=False)
    self.assertTrue(test_path.exists())
    self.assertEqual(cfg, Config())

    test_path.unlink()
