"""
HTTP surface.

- routes.py: /health, /training/questions, /circuits, /circuits/{name}/reset
- dependencies.py: Singleton providers for FastAPI Depends
- middleware.py: Request ID tracing
- error_handlers.py: Exception -> envelope mapping
"""
