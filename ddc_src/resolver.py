#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Default service resolution."""

from typing import Optional

DEFAULT_SERVICE = "api"


def resolve_service(explicit: Optional[str], default: str = DEFAULT_SERVICE) -> str:
    """Return the explicit service when given, otherwise the default"""
    if explicit is not None and explicit.strip():
        return explicit
    return default
