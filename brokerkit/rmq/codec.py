"""JSON payload codec."""

import dataclasses
import json
from typing import Any, Optional, Union

from brokerkit.rmq.interface import MessageCodec


def to_wire(codec: MessageCodec, value: Any) -> str:
    """Encode ``value`` with ``codec`` unless it already is wire text."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    if isinstance(value, str):
        return value
    return codec.encode(value)


class JsonCodec(MessageCodec):
    """
    UTF-8 JSON codec.

    Objects exposing ``to_dict()`` are encoded from its result, other
    dataclass instances from their fields. When decoding into a dataclass (or
    a type with a ``from_dict`` classmethod) the JSON object supplies the
    fields.
    """

    def __init__(self, ensure_ascii: bool = False) -> None:
        self._ensure_ascii = ensure_ascii

    def encode(self, value: Any) -> str:
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            value = dataclasses.asdict(value)
        return json.dumps(value, ensure_ascii=self._ensure_ascii, default=str)

    def decode(self, body: Union[str, bytes], message_type: Optional[type] = None) -> Any:
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8")
        data = json.loads(body)

        if message_type is None or isinstance(data, message_type):
            return data
        if hasattr(message_type, "from_dict"):
            return message_type.from_dict(data)
        if dataclasses.is_dataclass(message_type):
            if not isinstance(data, dict):
                raise TypeError(
                    f"Cannot build {message_type.__qualname__} from {type(data).__name__}"
                )
            return message_type(**data)
        return message_type(data)
