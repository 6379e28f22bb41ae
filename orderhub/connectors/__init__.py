"""Stream connectors"""

from orderhub.connectors.stream_listener import StreamListener

__all__ = ["StreamListener"]
