from src.services.streaming.channel import ChannelState, EventChannel

__all__ = ["ChannelState", "EventChannel"]
