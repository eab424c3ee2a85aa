"""
Watson APIs - async Python clients for Watson cloud services
"""

__version__ = "0.2.0"

from typing import Any

# Import shared utilities
from .utils import (
    APIError,
    ConfigurationError,
    AuthenticationError,
    ClientError,
    RequestError,
    InvalidInputError,
    MissingParameterError,
    ServiceConfig,
    RequestDescriptor,
    ServiceRequest,
    ServiceResponse,
    resolve_credentials,
)

from .language_translator import (
    LanguageTranslatorV2,
    TranslationModel,
    Translation,
    TranslationResult,
    IdentifiableLanguage,
    IdentifiedLanguage,
)

LANGUAGE_TRANSLATOR_VERSIONS = {
    "v2": LanguageTranslatorV2,
}


def language_translator(version: str = "v2", **options: Any) -> LanguageTranslatorV2:
    """
    Create a Language Translator client for an API version.

    Args:
        version: API version (only "v2" is available)
        **options: Client options (username, password, url, token, ...)

    Raises:
        ConfigurationError: If the version is unknown or credentials are missing

    Example:
        client = language_translator(version="v2", username="user", password="pass")
    """
    try:
        client_class = LANGUAGE_TRANSLATOR_VERSIONS[version]
    except KeyError:
        raise ConfigurationError(
            f"Unknown language_translator version {version!r}, "
            f"available: {', '.join(sorted(LANGUAGE_TRANSLATOR_VERSIONS))}"
        )
    return client_class(version=version, **options)


__all__ = [
    "__version__",

    # Factory
    "language_translator",

    # Shared
    "APIError",
    "ConfigurationError",
    "AuthenticationError",
    "ClientError",
    "RequestError",
    "InvalidInputError",
    "MissingParameterError",
    "ServiceConfig",
    "RequestDescriptor",
    "ServiceRequest",
    "ServiceResponse",
    "resolve_credentials",

    # Language Translator
    "LanguageTranslatorV2",
    "TranslationModel",
    "Translation",
    "TranslationResult",
    "IdentifiableLanguage",
    "IdentifiedLanguage",
]
