from .interceptors import BaseInterceptor, ChatInterceptor, EngineModifier, InterceptorChain
from .router import RouteResult, Router

__all__ = [
    "Router",
    "RouteResult",
    "ChatInterceptor",
    "EngineModifier",
    "BaseInterceptor",
    "InterceptorChain",
]
