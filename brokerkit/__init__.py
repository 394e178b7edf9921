"""brokerkit: RabbitMQ publish/subscribe, pull and RPC for Python services."""

__version__ = "0.1.0"
