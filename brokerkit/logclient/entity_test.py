"""Tests for log client entities."""

import base64
import json
import os
import threading

import brotli

from brokerkit.logclient.entity import XmlLog, decompress_text, get_log_api_url
from brokerkit.rmq.codec import JsonCodec

REQUEST_XML = "<OrderRequest><Id>42</Id><Note>größe</Note></OrderRequest>"


class TestLogApiUrl:

    def test_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_OPENAPI_URL", "http://logs.local/")
        assert get_log_api_url() == "http://logs.local/api/xmllog/add"

    def test_explicit_base(self):
        assert get_log_api_url("http://logs") == "http://logs/api/xmllog/add"

    def test_missing_base(self, monkeypatch):
        monkeypatch.delenv("LOG_OPENAPI_URL", raising=False)
        assert get_log_api_url() == "/api/xmllog/add"


class TestXmlLog:

    def test_captures_process_identity(self):
        log = XmlLog(class_name="OrderService", method_name="place")

        assert log.process_id == os.getpid()
        assert log.thread_id == threading.get_ident()
        assert log.thread_name == threading.current_thread().name
        assert log.machine_name
        assert log.ip_address

    def test_payloads_are_compressed_on_the_wire(self):
        data = XmlLog(rq=REQUEST_XML, rs="<Ok/>").to_dict()

        assert data["RQ"] != REQUEST_XML
        assert brotli.decompress(base64.b64decode(data["RQ"])).decode("utf-8") == REQUEST_XML
        assert XmlLog.decompress(data["RS"]) == "<Ok/>"

    def test_missing_payloads(self):
        data = XmlLog().to_dict()
        assert data["RQ"] is None
        assert decompress_text(None) is None

    def test_wire_field_names(self):
        data = XmlLog(method_display_name="Place order", duration=12).to_dict()

        assert data["MethodCName"] == "Place order"
        assert data["Duration"] == 12
        assert "AppDomainName" in data
        assert "CreatedTime" in data

    def test_json_codec_round_trip(self):
        codec = JsonCodec()
        log = XmlLog(class_name="OrderService", rq=REQUEST_XML, rs="<Ok/>", duration=5)

        body = codec.encode(log)
        assert REQUEST_XML not in body
        assert json.loads(body)["ClassName"] == "OrderService"

        decoded = codec.decode(body, XmlLog)
        assert decoded.rq == REQUEST_XML
        assert decoded.rs == "<Ok/>"
        assert decoded.created_time == log.created_time
        assert decoded.duration == 5
