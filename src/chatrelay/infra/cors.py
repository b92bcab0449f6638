"""Origin allow-list matching for the CORS middleware.

Allowed origins are exact strings where ``*`` matches any run of
characters; a bare ``*`` admits every origin.  The list is compiled into
one anchored regex and handed to Starlette's ``CORSMiddleware`` as
``allow_origin_regex``.  Requests without an ``Origin`` header are not
CORS requests and always pass.

Pure infra, no domain imports.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.configs.system import CORSConfig

_WILDCARD = "*"


def _origin_pattern(origin: str) -> str:
    if origin == _WILDCARD:
        return ".*"
    return re.escape(origin).replace(re.escape(_WILDCARD), ".*")


def build_origin_regex(origins: Iterable[str]) -> str | None:
    """Compile *origins* into one alternation, or ``None`` if empty."""
    patterns = [_origin_pattern(o) for o in origins if o]
    if not patterns:
        return None
    return "|".join(f"(?:{p})" for p in patterns)


def is_origin_allowed(origin: str | None, origins: Iterable[str]) -> bool:
    """Same decision the middleware makes for *origin*."""
    if not origin:
        return True
    regex = build_origin_regex(origins)
    return regex is not None and re.fullmatch(regex, origin) is not None


def add_cors(app: FastAPI, config: CORSConfig) -> None:
    """Install ``CORSMiddleware`` configured from *config*."""
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=build_origin_regex(config.origins),
        allow_credentials=True,
        allow_methods=config.allow_methods,
        allow_headers=config.allow_headers,
        max_age=config.max_age,
    )
