"""
Response model filled by handlers and turned into a transport-native response.
"""

import logging
from typing import Any, Dict, Optional

from .adapters import TransportAdapter
from .contract import RouteContract
from .negotiation import DEFAULT_FORMATS, FormatTable
from .serializers import serialize

logger = logging.getLogger(__name__)


class ContractResponse:
    """What a handler answers, shaped by its route contract.

    The format and status code are resolved from the contract and the
    negotiated content type before the handler runs. Handlers set
    ``content`` and, for creations, ``location``; they may also override the
    Content-Type header.
    """

    def __init__(
        self,
        format: str,
        status_code: int,
        mime_type: Optional[str] = None,
        formats: FormatTable = DEFAULT_FORMATS,
    ):
        self.formats = formats
        self._format: Optional[str] = None
        self.format = format
        self.status_code = status_code
        self.mime_type = mime_type or formats.mime_types(self.format)[0]
        self.content: Any = None
        self.location: Optional[str] = None
        self.content_type: Optional[str] = None

    @classmethod
    def for_contract(
        cls,
        contract: RouteContract,
        negotiated_type: Optional[str],
        formats: FormatTable = DEFAULT_FORMATS,
    ) -> "ContractResponse":
        """Response for ``contract`` in the format ``negotiated_type`` selects.

        Raises:
            AmbiguousStatusCode: if the contract has no single 2xx status code
        """
        format = formats.resolve(negotiated_type)
        return cls(format, contract.success_status_code, negotiated_type, formats)

    @property
    def format(self) -> str:
        return self._format

    @format.setter
    def format(self, format: str) -> None:
        self.formats.assert_supported(format)
        if self._format is not None and format != self._format:
            # MIME type follows the new family
            self.mime_type = self.formats.mime_types(format)[0]
        self._format = format

    @property
    def headers(self) -> Dict[str, str]:
        """Headers to send, indexed by name."""
        headers: Dict[str, str] = {}
        if self.content is not None:
            headers["Content-Type"] = self.content_type or self.mime_type
        if self.location:
            headers["Location"] = self.location
        return headers

    def serialized(self) -> Optional[str]:
        if self.content is None:
            return None
        return serialize(self.content, self.format)

    def to_transport(self, adapter: TransportAdapter, auto_serialize: bool = True) -> Any:
        """Ask ``adapter`` for a native response with the content, status code and headers.

        Args:
            adapter: Adapter of the request being answered
            auto_serialize: Serialize content in the resolved format; when False
                            the content is passed to the adapter untouched
        """
        content = self.serialized() if auto_serialize else self.content
        logger.debug(f"Building {self.status_code} {self.format} response")
        return adapter.build_response(content, self.status_code, self.headers)
