"""Abstract interfaces for payload codecs."""

import abc
from typing import Any, Optional, Union


class MessageCodec(abc.ABC):
    """Abstract interface for converting payloads to and from wire text."""

    @abc.abstractmethod
    def encode(self, value: Any) -> str:
        """
        Serialize a payload.

        Args:
            value: Application value to send

        Returns:
            UTF-8 text placed in the message body
        """
        pass

    @abc.abstractmethod
    def decode(self, body: Union[str, bytes], message_type: Optional[type] = None) -> Any:
        """
        Deserialize a message body.

        Args:
            body: Message body as received from the broker
            message_type: Optional target type for the decoded value

        Returns:
            The decoded value
        """
        pass
