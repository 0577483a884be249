from .history import HistoryAssembler, HttpMessageStore, InMemoryMessageStore, MessageStore
from .history_reducer import HistoryReducer
from .thread import InboundMessage, MessageType, PersistedMessage, Thread

__all__ = [
    "Thread",
    "InboundMessage",
    "PersistedMessage",
    "MessageType",
    "MessageStore",
    "InMemoryMessageStore",
    "HttpMessageStore",
    "HistoryAssembler",
    "HistoryReducer",
]
