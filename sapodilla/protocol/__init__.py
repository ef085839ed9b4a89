from .cipher import RC4, transform
from .constants import (
  MAX_PAYLOAD_LENGTH,
  ContentType,
  EncodingType,
  EncryptionMode,
  InteractionType,
)
from .errors import (
  ChecksumError,
  FramingError,
  LinkError,
  PayloadTooLarge,
  RemoteError,
  SequenceAnomaly,
  UnexpectedContent,
  UnsolicitedResponse,
  UnsupportedEncryptionMode,
)
from .fragments import Chunk, FragmentAssembler, Package, split
from .link import DeviceLink
from .packets import Flags, Packet, checksum
from .router import MessageRouter
from .sequence import SequenceTracker
from .session import Event, JobHandle, JobKind, JsonRpcSession, PendingCall
from .stream import StreamDecoder, iter_packets
from .uploader import JobDataUploader, job_id_prefix
