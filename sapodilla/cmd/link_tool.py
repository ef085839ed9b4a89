"""Command line tool for the printer link.

  sapodilla decode capture.bin          list the frames in a raw capture
  sapodilla decode --hex capture.txt    same, for a hex dump
  sapodilla status --port /dev/rfcomm0  print device properties
  sapodilla print photo.jpg --plot cut.plt --port /dev/rfcomm0
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import List, Optional, TextIO

import sapodilla
from sapodilla.config import Config
from sapodilla.io import LOG_LEVEL_IO
from sapodilla.printing import PixCutBackend, Printer
from sapodilla.printing.jobs import INFO_PROPERTIES
from sapodilla.protocol.cipher import transform
from sapodilla.protocol.constants import ContentType, EncodingType, EncryptionMode
from sapodilla.protocol.errors import LinkError
from sapodilla.protocol.packets import Packet
from sapodilla.protocol.stream import iter_packets

logger = logging.getLogger(__name__)


def get_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="sapodilla", description="PixCut printer link tool.")
  parser.add_argument("-v", "--verbose", action="count", default=0,
    help="Log to stderr. Repeat for debug and raw IO output.")
  subparsers = parser.add_subparsers(dest="command", required=True)

  decode = subparsers.add_parser("decode", help="Decode frames from a capture file.")
  decode.add_argument("file", help="Capture file, '-' for stdin.")
  decode.add_argument("--hex", action="store_true", default=False,
    help="The file is a hex dump instead of raw bytes.")
  decode.add_argument("--key", type=str, default=None, help="RC4 link key as hex.")
  decode.set_defaults(func=cmd_decode)

  def add_port_arguments(p: argparse.ArgumentParser):
    p.add_argument("-p", "--port", type=str, default=None,
      help="Serial port of the printer. Defaults to the configured port.")
    p.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for a response.")

  status = subparsers.add_parser("status", help="Print device properties.")
  add_port_arguments(status)
  status.set_defaults(func=cmd_status)

  print_ = subparsers.add_parser("print", help="Print a JPEG image, optionally cutting it.")
  print_.add_argument("image", help="JPEG file sized for the canvas.")
  print_.add_argument("--plot", type=str, default=None,
    help="PLT cut file. If given, the job is a print and cut job.")
  print_.add_argument("--canvas", type=str, default=None, help="Canvas name, e.g. 4x6.")
  print_.add_argument("-n", "--copies", type=int, default=1)
  print_.add_argument("--no-wait", action="store_true", default=False,
    help="Return once the data is sent instead of waiting for the job to finish.")
  add_port_arguments(print_)
  print_.set_defaults(func=cmd_print)

  return parser


def describe_frame(packet: Packet, key: Optional[bytes] = None) -> List[str]:
  lines = [packet.describe()]
  payload = packet.payload
  if packet.encryption_mode != EncryptionMode.NONE:
    if key is None:
      return lines
    payload = transform(payload, packet.encryption_mode, key)

  if packet.content_type == ContentType.MESSAGE and packet.encoding == EncodingType.JSON \
      and packet.package_total == 1:
    try:
      lines.append("  " + json.dumps(json.loads(payload.decode("utf-8"))))
      return lines
    except ValueError:
      pass
  if packet.content_type == ContentType.DATA and len(payload) >= 4:
    lines.append(f"  job {int.from_bytes(payload[:4], 'little')}, {len(payload) - 4} data bytes")
  else:
    lines.append("  " + payload[:64].hex(" ") + (" ..." if len(payload) > 64 else ""))
  return lines


def cmd_decode(args: argparse.Namespace, out: TextIO = sys.stdout) -> int:
  if args.file == "-":
    raw = sys.stdin.buffer.read()
  else:
    with open(args.file, "rb") as f:
      raw = f.read()
  if args.hex:
    raw = bytes.fromhex("".join(raw.decode("ascii").split()))
  key = bytes.fromhex(args.key) if args.key is not None else None

  errors = 0
  for item in iter_packets(raw):
    if isinstance(item, LinkError):
      errors += 1
      print(f"! {type(item).__name__}: {item}", file=out)
    else:
      for line in describe_frame(item, key=key):
        print(line, file=out)
  return 1 if errors > 0 else 0


def _printer(args: argparse.Namespace, config: Config) -> Printer:
  link_config = config.link
  if args.port is not None:
    link_config = dataclasses.replace(link_config, port=args.port)
  backend = PixCutBackend.from_config(link_config, call_timeout=args.timeout)
  return Printer(backend=backend)


async def _status(args: argparse.Namespace, config: Config, out: TextIO):
  async with _printer(args, config) as printer:
    properties = await printer.get_properties(INFO_PROPERTIES)
  for name, value in properties.items():
    print(f"{name}: {value}", file=out)


def cmd_status(args: argparse.Namespace, out: TextIO = sys.stdout) -> int:
  asyncio.run(_status(args, sapodilla.CONFIG, out))
  return 0


async def _print(args: argparse.Namespace, config: Config, out: TextIO):
  with open(args.image, "rb") as f:
    image = f.read()
  plot = None
  if args.plot is not None:
    with open(args.plot, "rb") as f:
      plot = f.read()

  def progress(total: int, sent: int):
    print(f"\rsent {sent} of {total} bytes", end="", file=out)

  async with _printer(args, config) as printer:
    if plot is None:
      job = await printer.print_photo(image, canvas=args.canvas, copies=args.copies,
                                      progress=progress)
    else:
      job = await printer.print_and_cut(image, plot, canvas=args.canvas, copies=args.copies,
                                        progress=progress)
    print(f"\njob {job.job_id} sent", file=out)
    if not args.no_wait:
      info = await printer.wait_for_job(job, poll_interval=config.link.poll_interval)
      print(f"job {info.job_id}: {info.job_state.name.lower()}", file=out)


def cmd_print(args: argparse.Namespace, out: TextIO = sys.stdout) -> int:
  asyncio.run(_print(args, sapodilla.CONFIG, out))
  return 0


def main(argv: Optional[List[str]] = None) -> int:
  args = get_parser().parse_args(argv)
  if args.verbose > 0:
    level = {1: logging.INFO, 2: logging.DEBUG}.get(args.verbose, LOG_LEVEL_IO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    sapodilla_logger = logging.getLogger("sapodilla")
    sapodilla_logger.addHandler(handler)
    sapodilla_logger.setLevel(level)
  return args.func(args)


if __name__ == "__main__":
  sys.exit(main())
