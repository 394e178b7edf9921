"""Log record entities published to the central log API."""

from brokerkit.logclient.entity import (
    BaseLog,
    XmlLog,
    compress_text,
    decompress_text,
    get_log_api_url,
)

__all__ = [
    "BaseLog",
    "XmlLog",
    "compress_text",
    "decompress_text",
    "get_log_api_url",
]
