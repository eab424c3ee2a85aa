"""
Language Translator module for text translation, language identification
and custom model management.
"""

from .core import (
    # Main API Client
    LanguageTranslatorV2,

    # Operations
    OPERATIONS,

    # Data Models
    TranslationModel,
    Translation,
    TranslationResult,
    IdentifiableLanguage,
    IdentifiedLanguage,
)

__all__ = [
    # Main API Client
    "LanguageTranslatorV2",

    # Operations
    "OPERATIONS",

    # Data Models
    "TranslationModel",
    "Translation",
    "TranslationResult",
    "IdentifiableLanguage",
    "IdentifiedLanguage",
]
