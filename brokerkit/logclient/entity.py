"""
Log records shipped to the central log API.

XmlLog captures one request/response exchange. The request and response
texts are Brotli compressed and base64 encoded on the wire, so large XML or
JSON payloads stay small when published through the broker.
"""

import base64
import os
import socket
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import brotli

LOG_API_PATH = "/api/xmllog/add"
COMPRESSION_QUALITY = 3


def get_local_ip() -> str:
    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


def get_log_api_url(base_url: Optional[str] = None) -> str:
    """Endpoint for XmlLog records, built from LOG_OPENAPI_URL."""
    base = base_url if base_url is not None else os.getenv("LOG_OPENAPI_URL", "")
    return base.rstrip("/") + LOG_API_PATH


def _process_name() -> str:
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).stem
    return Path(sys.executable).stem


def _app_base_path() -> str:
    if sys.argv and sys.argv[0]:
        return str(Path(sys.argv[0]).resolve().parent)
    return os.getcwd()


def compress_text(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return base64.b64encode(brotli.compress(text.encode("utf-8"), quality=COMPRESSION_QUALITY)).decode("ascii")


def decompress_text(blob: Optional[str]) -> Optional[str]:
    if blob is None:
        return None
    return brotli.decompress(base64.b64decode(blob)).decode("utf-8")


@dataclass
class BaseLog:
    """Where and when a log record was produced."""

    url: str = field(default_factory=get_log_api_url)
    machine_name: str = field(default_factory=socket.gethostname)
    ip_address: str = field(default_factory=get_local_ip)
    client_ip: Optional[str] = None
    process_id: int = field(default_factory=os.getpid)
    process_name: str = field(default_factory=_process_name)
    thread_id: int = field(default_factory=threading.get_ident)
    thread_name: str = field(default_factory=lambda: threading.current_thread().name)
    created_time: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Url": self.url,
            "MachineName": self.machine_name,
            "IPAddress": self.ip_address,
            "ClientIP": self.client_ip,
            "ProcessID": self.process_id,
            "ProcessName": self.process_name,
            "ThreadID": self.thread_id,
            "ThreadName": self.thread_name,
            "CreatedTime": self.created_time.isoformat(),
        }

    @staticmethod
    def _base_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        created = data.get("CreatedTime")
        return {
            "url": data.get("Url", ""),
            "machine_name": data.get("MachineName", ""),
            "ip_address": data.get("IPAddress", ""),
            "client_ip": data.get("ClientIP"),
            "process_id": data.get("ProcessID", 0),
            "process_name": data.get("ProcessName", ""),
            "thread_id": data.get("ThreadID", 0),
            "thread_name": data.get("ThreadName", ""),
            "created_time": datetime.fromisoformat(created) if created else datetime.now(),
        }


@dataclass
class XmlLog(BaseLog):
    """
    Request/response trace of one method call.

    Attributes:
        class_name: Class that handled the call
        method_name: Method that handled the call
        method_display_name: Human readable method name
        app_base_path: Directory the application runs from
        rq: Request text (compressed on the wire as "RQ")
        rs: Response text (compressed on the wire as "RS")
        remark: Free-form note
        duration: Elapsed time in milliseconds
    """

    class_name: Optional[str] = None
    method_name: Optional[str] = None
    method_display_name: Optional[str] = None
    app_base_path: str = field(default_factory=_app_base_path)
    rq: Optional[str] = None
    rs: Optional[str] = None
    remark: Optional[str] = None
    duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "ClassName": self.class_name,
            "MethodName": self.method_name,
            "MethodCName": self.method_display_name,
            "AppDomainName": self.app_base_path,
            "RQ": compress_text(self.rq),
            "RS": compress_text(self.rs),
            "Remark": self.remark,
            "Duration": self.duration,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "XmlLog":
        return cls(
            **cls._base_kwargs(data),
            class_name=data.get("ClassName"),
            method_name=data.get("MethodName"),
            method_display_name=data.get("MethodCName"),
            app_base_path=data.get("AppDomainName", ""),
            rq=decompress_text(data.get("RQ")),
            rs=decompress_text(data.get("RS")),
            remark=data.get("Remark"),
            duration=data.get("Duration", 0),
        )

    @staticmethod
    def decompress(blob: Optional[str]) -> Optional[str]:
        """Restore an "RQ"/"RS" wire value to text."""
        return decompress_text(blob)
