from anoncheckin.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
