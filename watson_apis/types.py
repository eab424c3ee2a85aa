"""
Type definitions for Watson APIs.

This module provides type hints, literals, and TypedDict definitions
for request parameters and response bodies of the service clients.
"""

from typing import Literal, Union, List, Optional, Dict, Any, Callable, BinaryIO, TYPE_CHECKING
from pathlib import Path

from typing_extensions import NotRequired, TypedDict

if TYPE_CHECKING:
    from .utils import ServiceResponse


# ==================== Common Literals ====================

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
"""HTTP methods used by the service operations."""

ModelStatus = Literal["uploading", "uploaded", "dispatching", "queued", "training",
                      "trained", "publishing", "available", "deleted", "error"]
"""Lifecycle states reported for a translation model."""


# ==================== Service Binding ====================


class BindingCredentials(TypedDict):
    """Credentials block of a service binding."""
    username: NotRequired[str]
    password: NotRequired[str]
    url: NotRequired[str]


class ServiceBinding(TypedDict):
    """One entry of VCAP_SERVICES."""
    credentials: BindingCredentials
    label: NotRequired[str]
    name: NotRequired[str]
    plan: NotRequired[str]
    tags: NotRequired[List[str]]


# ==================== Request Parameters ====================

Attachment = Union[bytes, str, Path, BinaryIO]
"""Multipart attachment: raw bytes, a file path, or a binary file object."""


# ==================== Response Bodies ====================


class TranslationModelDict(TypedDict):
    """Translation model as returned by the service."""
    model_id: str
    name: NotRequired[str]
    source: NotRequired[str]
    target: NotRequired[str]
    base_model_id: NotRequired[str]
    domain: NotRequired[str]
    customizable: NotRequired[bool]
    default_model: NotRequired[bool]
    owner: NotRequired[str]
    status: NotRequired[ModelStatus]


class TranslationResultDict(TypedDict):
    """Translation result structure."""
    translations: List[Dict[str, str]]
    word_count: int
    character_count: int


class IdentifiedLanguageDict(TypedDict):
    """Language identification candidate."""
    language: str
    confidence: float


# ==================== Type Aliases ====================

Headers = Dict[str, str]
"""HTTP headers dictionary."""

Params = Optional[Dict[str, Any]]
"""Operation parameters; None is treated as an empty request."""

ResponseCallback = Callable[[Optional[Exception], Optional["ServiceResponse"], Any], None]
"""Completion callback receiving (error, response, body)."""


# ==================== Exports ====================

__all__ = [
    # Literals
    "HttpMethod",
    "ModelStatus",

    # TypedDict
    "BindingCredentials",
    "ServiceBinding",
    "TranslationModelDict",
    "TranslationResultDict",
    "IdentifiedLanguageDict",

    # Type Aliases
    "Attachment",
    "Headers",
    "Params",
    "ResponseCallback",
]
