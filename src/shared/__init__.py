# src/shared/__init__.py
"""
Общий код между сервисами.

Модули:
- models: общие Pydantic-модели (health check)
"""

__all__: list[str] = []
