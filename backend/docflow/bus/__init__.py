from docflow.bus.client import BusConsumer, MessageBus, MessageHandler
from docflow.bus.policies import Disposition, HandlerFailurePolicy, LogAndDrop

__all__ = [
    "BusConsumer",
    "Disposition",
    "HandlerFailurePolicy",
    "LogAndDrop",
    "MessageBus",
    "MessageHandler",
]
