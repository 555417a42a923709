"""
Content negotiation: Accept matching and the MIME-type to format family table.
"""

import logging
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .contract import media_type
from .exceptions import UnsupportedFormat

logger = logging.getLogger(__name__)


def parse_accept(accept_header: Optional[str]) -> List[str]:
    """Split an Accept header into lower-cased media ranges, dropping parameters.

    Ranges with ``q=0`` are discarded since the client refuses them.
    """
    if not accept_header:
        return ["*/*"]
    ranges = []
    for item in accept_header.split(","):
        parts = [part.strip() for part in item.split(";")]
        if not parts[0]:
            continue
        refused = any(part.replace(" ", "") in ("q=0", "q=0.0", "q=0.00", "q=0.000") for part in parts[1:])
        if not refused:
            ranges.append(parts[0].lower())
    return ranges


def _range_matches(media_range: str, content_type: str) -> bool:
    if media_range == "*/*" or media_range == content_type:
        return True
    if media_range.endswith("/*"):
        return content_type.startswith(media_range[:-1])
    return False


def negotiate(accept_header: Optional[str], offered: Sequence[str]) -> Optional[str]:
    """Pick the offered content type the Accept header asks for.

    Media ranges are tried in the order the client sent them; within a range
    the route's declaration order wins. Matching ignores case.

    Returns:
        The matching offered content type as declared by the route, or None
    """
    for media_range in parse_accept(accept_header):
        for content_type in offered:
            if _range_matches(media_range, media_type(content_type)):
                return content_type
    return None


class FormatTable:
    """Explicit mapping of format families to the MIME types that select them.

    Built once at startup and never mutated. Family order matters: the first
    family whose MIME list contains a type wins.
    """

    def __init__(self, families: Mapping[str, Iterable[str]], default: str = "json"):
        self._families: Mapping[str, Tuple[str, ...]] = MappingProxyType({
            family: tuple(mime.lower() for mime in mimes) for family, mimes in families.items()
        })
        if default not in self._families:
            raise UnsupportedFormat(f"Default format {default!r} is not one of {', '.join(self._families)}")
        self.default = default

    @property
    def families(self) -> Tuple[str, ...]:
        return tuple(self._families)

    def mime_types(self, family: str) -> Tuple[str, ...]:
        """MIME types of ``family``; the first one is used when no type was negotiated."""
        self.assert_supported(family)
        return self._families[family]

    def family_for(self, content_type: Optional[str]) -> Optional[str]:
        """Family a MIME type belongs to, or None."""
        mime = media_type(content_type)
        for family, mimes in self._families.items():
            if mime in mimes:
                return family
        return None

    def resolve(self, content_type: Optional[str]) -> str:
        """Family for ``content_type``, falling back to the default family.

        The fallback covers requests (preflight for instance) that reach the
        response stage without a meaningful Accept value.
        """
        family = self.family_for(content_type)
        if family is None:
            logger.debug(f"No format family for {content_type!r}, falling back to {self.default}")
            return self.default
        return family

    def assert_supported(self, family: str) -> None:
        if family not in self._families:
            raise UnsupportedFormat(
                f"Format {family!r} not supported, only {', '.join(self._families)} are available"
            )

    def with_default(self, default: str) -> "FormatTable":
        return FormatTable(self._families, default=default)


DEFAULT_FORMATS = FormatTable({
    "json": ("application/json", "application/x-json"),
    "xml": ("text/xml", "application/xml", "application/x-xml"),
})
