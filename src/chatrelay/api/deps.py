"""Centralized FastAPI dependency type aliases.

Import these ``*Dep`` aliases in route modules instead of writing
``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias corresponds to
a single ``get_*`` factory and can be overridden in tests via
``app.dependency_overrides[get_xxx] = ...``.
"""

from typing import Annotated

from fastapi import Depends

from chatrelay.configs.config import AppConfig, get_app_config
from chatrelay.core.service import ChatService, get_chat_service

AppConfigDep = Annotated[AppConfig, Depends(get_app_config)]
ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
