"""Data models for content-addressed directory objects."""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any, Optional

from multiformats import CID

from .exceptions import DagSyncDecodeError
from .utils import DAG_PB, SHA2_256


def _decode_cid(text: str) -> CID:
    """Decode the textual form of a CID in any multibase.

    Raises:
        ValueError: If the text is not a valid CID
    """
    if not text:
        raise ValueError("Empty content address")
    try:
        return CID.decode(text)
    except Exception as e:
        # multibase, varint and multihash decoding raise unrelated types
        raise ValueError(f"Invalid content address {text!r}: {e}") from e


@total_ordering
@dataclass(frozen=True, eq=False)
class ContentAddress:
    """Immutable, self-describing address of content in the store.

    Keeps the CID text as given for display. Equality, hashing and ordering
    use the codec and multihash, so the CIDv0 and CIDv1 spellings of the
    same content are the same address.

    Examples:
        >>> v0 = ContentAddress.parse("QmUNLLsPACCz1vLxQVkXqqLX5R1X345qqfHbsf67hvA3Nn")
        >>> v0.version
        0
        >>> v0 == ContentAddress.parse(v0.to_base32())
        True
    """

    text: str
    cid: CID = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cid", _decode_cid(self.text))

    def __str__(self) -> str:
        return self.text

    @property
    def _key(self) -> tuple[int, bytes]:
        return self.cid.codec.code, bytes(self.cid.digest)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContentAddress):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: "ContentAddress") -> bool:
        if not isinstance(other, ContentAddress):
            return NotImplemented
        return self._key < other._key

    def __hash__(self) -> int:
        return hash(self._key)

    @classmethod
    def parse(cls, text: str) -> "ContentAddress":
        """Parse a CID from user or store input."""
        if not isinstance(text, str):
            raise ValueError(f"Content address must be a string, got {text!r}")
        return cls(text.strip())

    @classmethod
    def from_multihash(
        cls, multihash: bytes, version: int = 0, codec: str = DAG_PB
    ) -> "ContentAddress":
        """Build an address from raw multihash bytes.

        Args:
            multihash: Multihash bytes (code, length, digest)
            version: CID version (0 or 1)
            codec: Multicodec name of the content (CIDv0 implies dag-pb)
        """
        if version == 0:
            if codec != DAG_PB:
                raise ValueError("CIDv0 can only address dag-pb content")
            return cls(str(CID("base58btc", 0, DAG_PB, multihash)))
        return cls(str(CID("base32", version, codec, multihash)))

    @property
    def version(self) -> int:
        return self.cid.version

    @property
    def codec(self) -> str:
        return self.cid.codec.name

    @property
    def multihash(self) -> bytes:
        return bytes(self.cid.digest)

    def to_base32(self) -> str:
        """Return the CIDv1 base32 form (used by subdomain gateways)."""
        return str(self.cid.set(version=1, base="base32"))

    def to_v0(self) -> str:
        """Return the CIDv0 form.

        Raises:
            ValueError: If the content is not dag-pb hashed with sha2-256
        """
        if self.codec != DAG_PB or self.cid.hashfun.name != SHA2_256:
            raise ValueError(f"{self.text} has no CIDv0 representation")
        return str(self.cid.set(version=0, base="base58btc"))


class LinkKind(str, Enum):
    """Type of the object a link points at, as reported by the store."""

    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    UNKNOWN = "unknown"

    @classmethod
    def from_api_value(cls, value: Any) -> "LinkKind":
        """Map a store's link type (UnixFS type code or name) to a kind."""
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                return cls.UNKNOWN
        # UnixFS data types: 0 raw, 1 directory, 2 file, 4 symlink, 5 HAMT shard
        return {
            0: cls.FILE,
            1: cls.DIRECTORY,
            2: cls.FILE,
            4: cls.SYMLINK,
            5: cls.DIRECTORY,
        }.get(value, cls.UNKNOWN)


@dataclass(frozen=True)
class Link:
    """A named, content-addressed pointer from a directory to a child."""

    name: str
    """Link name, unique within its directory"""

    target: ContentAddress
    """Address of the child object"""

    size: int = 0
    """Best-effort size hint, not authoritative"""

    kind: LinkKind = LinkKind.UNKNOWN
    """Type of the child, when the store reports it"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Link":
        """Create a Link from a store response entry.

        Accepts both the ``ls`` shape (``Name``/``Hash``/``Size``/``Type``)
        and the dag-json shape where ``Hash`` is ``{"/": cid}``.

        Raises:
            DagSyncDecodeError: If required fields are missing or malformed
        """
        try:
            name = data["Name"]
            target = data["Hash"]
            if isinstance(target, dict):
                target = target["/"]
            size = data.get("Size", data.get("Tsize", 0)) or 0
            return cls(
                name=name,
                target=ContentAddress.parse(target),
                size=int(size),
                kind=LinkKind.from_api_value(data.get("Type")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DagSyncDecodeError(f"Malformed link entry {data!r}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Hash": str(self.target),
            "Size": self.size,
            "Type": self.kind.value,
        }


@dataclass(frozen=True)
class DirectoryObject:
    """A fetched or freshly patched directory node.

    Instances are transient snapshots: a patch never changes an existing
    object, it produces a new one with a new address.
    """

    address: ContentAddress
    links: tuple[Link, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for link in self.links:
            if not link.name:
                raise DagSyncDecodeError(
                    f"{self.address} has an unnamed link, not a directory"
                )
            if link.name in seen:
                raise DagSyncDecodeError(
                    f"Duplicate link name {link.name!r} in {self.address}"
                )
            seen.add(link.name)

    def find(self, name: str) -> Optional[Link]:
        """Find a link by exact (case-sensitive) name."""
        for link in self.links:
            if link.name == name:
                return link
        return None

    def names(self) -> set[str]:
        return {link.name for link in self.links}

    @classmethod
    def from_api_response(
        cls, address: ContentAddress, data: Any
    ) -> "DirectoryObject":
        """Create a DirectoryObject from a store response.

        Accepts ``{"Objects": [{"Hash": ..., "Links": [...]}]}`` as returned
        by ``ls`` and the bare ``{"Links": [...]}`` shape of ``object get``.

        Args:
            address: Address the object was fetched from
            data: Parsed JSON response

        Raises:
            DagSyncDecodeError: If the payload does not match either shape
        """
        if not isinstance(data, dict):
            raise DagSyncDecodeError(f"Expected a JSON object, got {type(data).__name__}")

        if "Objects" in data:
            objects = data["Objects"]
            if not isinstance(objects, list) or len(objects) != 1:
                raise DagSyncDecodeError(
                    f"Expected exactly one object for {address}, got {objects!r}"
                )
            data = objects[0]
            if not isinstance(data, dict):
                raise DagSyncDecodeError(f"Malformed object entry {data!r}")

        links = data.get("Links")
        if links is None:
            links = []
        if not isinstance(links, list):
            raise DagSyncDecodeError(f"Links of {address} must be a list")

        return cls(
            address=address,
            links=tuple(Link.from_dict(entry) for entry in links),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Hash": str(self.address),
            "Links": [link.to_dict() for link in self.links],
        }


@dataclass
class MediaInfo:
    """Technical metadata of an audio file, as reported by the prober."""

    format: str
    channels: str
    sample_rate: str
    bit_depth: str
    duration: str

    @classmethod
    def from_track(cls, track: dict[str, Any]) -> "MediaInfo":
        """Create MediaInfo from a mediainfo ``Audio`` track entry.

        Raises:
            KeyError: If a required field is missing
        """
        return cls(
            format=str(track["Format"]),
            channels=str(track["Channels"]),
            sample_rate=str(track["SamplingRate"]),
            bit_depth=str(track.get("BitDepth", "")),
            duration=str(track["Duration"]),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "format": self.format,
            "channels": self.channels,
            "sample_rate": self.sample_rate,
            "bit_depth": self.bit_depth,
            "duration": self.duration,
        }
