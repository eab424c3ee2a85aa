"""
Language Translator v2 API wrapper.

This module provides an async interface to the Watson Language Translator
service, allowing users to translate text, identify languages and manage
custom translation models.

Every operation returns a ServiceRequest handle synchronously. The handle
exposes the built request and is awaited to send it.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from ..types import Params, ResponseCallback, TranslationModelDict, TranslationResultDict, IdentifiedLanguageDict
from ..utils import (
    BaseServiceAPI,
    BaseResponse,
    Operation,
    ServiceRequest,
)

logger = logging.getLogger(__name__)


# ==================== Operations ====================

LIST_MODELS = Operation(
    name="list_models",
    method="GET",
    path="/v2/models",
    query=("source", "target", "default"),
)

TRANSLATE = Operation(
    name="translate",
    method="POST",
    path="/v2/translate",
    required=("text",),
    one_of=("model_id", "source", "target"),
    body=("text", "source", "target", "model_id"),
)

LIST_IDENTIFIABLE_LANGUAGES = Operation(
    name="list_identifiable_languages",
    method="GET",
    path="/v2/identifiable_languages",
)

IDENTIFY = Operation(
    name="identify",
    method="POST",
    path="/v2/identify",
    required=("text",),
    body=("text",),
)

CREATE_MODEL = Operation(
    name="create_model",
    method="POST",
    path="/v2/models",
    required=("base_model_id",),
    query=("base_model_id", "name"),
    files=("forced_glossary", "parallel_corpus", "monolingual_corpus"),
)

DELETE_MODEL = Operation(
    name="delete_model",
    method="DELETE",
    path="/v2/models/{model_id}",
)

GET_MODEL = Operation(
    name="get_model",
    method="GET",
    path="/v2/models/{model_id}",
)

OPERATIONS: Dict[str, Operation] = {
    op.name: op
    for op in (
        LIST_MODELS,
        TRANSLATE,
        LIST_IDENTIFIABLE_LANGUAGES,
        IDENTIFY,
        CREATE_MODEL,
        DELETE_MODEL,
        GET_MODEL,
    )
}


# ==================== Data Models ====================

@dataclass
class TranslationModel(BaseResponse):
    """A translation model, either a base model or a custom one."""
    model_id: str
    name: str = ""
    source: str = ""
    target: str = ""
    base_model_id: str = ""
    domain: str = ""
    customizable: bool = False
    default_model: bool = False
    owner: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: TranslationModelDict) -> "TranslationModel":
        """Create TranslationModel from API response dictionary."""
        return cls(
            model_id=data.get("model_id", ""),
            name=data.get("name", ""),
            source=data.get("source", ""),
            target=data.get("target", ""),
            base_model_id=data.get("base_model_id", ""),
            domain=data.get("domain", ""),
            customizable=data.get("customizable", False),
            default_model=data.get("default_model", False),
            owner=data.get("owner", ""),
            status=data.get("status", ""),
        )

    @classmethod
    def list_from_dict(cls, data: Dict[str, Any]) -> List["TranslationModel"]:
        """Parse the body of list_models."""
        return [cls.from_dict(m) for m in data.get("models", [])]


@dataclass
class Translation(BaseResponse):
    """One translated segment."""
    translation: str


@dataclass
class TranslationResult(BaseResponse):
    """Result from text translation."""
    translations: List[Translation] = field(default_factory=list)
    word_count: int = 0
    character_count: int = 0

    @property
    def text(self) -> str:
        """Translated segments joined by newlines."""
        return "\n".join(t.translation for t in self.translations)

    @classmethod
    def from_dict(cls, data: TranslationResultDict) -> "TranslationResult":
        """Create TranslationResult from API response dictionary."""
        return cls(
            translations=[
                Translation(translation=t.get("translation", ""))
                for t in data.get("translations", [])
            ],
            word_count=data.get("word_count", 0),
            character_count=data.get("character_count", 0),
        )


@dataclass
class IdentifiableLanguage(BaseResponse):
    """A language the service can identify."""
    language: str
    name: str = ""

    @classmethod
    def list_from_dict(cls, data: Dict[str, Any]) -> List["IdentifiableLanguage"]:
        """Parse the body of list_identifiable_languages."""
        return [
            cls(language=lang.get("language", ""), name=lang.get("name", ""))
            for lang in data.get("languages", [])
        ]


@dataclass
class IdentifiedLanguage(BaseResponse):
    """A language identification candidate."""
    language: str
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: IdentifiedLanguageDict) -> "IdentifiedLanguage":
        return cls(language=data.get("language", ""), confidence=data.get("confidence", 0.0))

    @classmethod
    def list_from_dict(cls, data: Dict[str, Any]) -> List["IdentifiedLanguage"]:
        """Parse the body of identify, most confident first."""
        languages = [cls.from_dict(lang) for lang in data.get("languages", [])]
        return sorted(languages, key=lambda lang: lang.confidence, reverse=True)


# ==================== API Client ====================

class LanguageTranslatorV2(BaseServiceAPI):
    """
    Async client for Watson Language Translator v2.

    Inherits from BaseServiceAPI for common functionality including:
    - Credential resolution (options, environment, VCAP_SERVICES)
    - Session management
    - Parameter validation and request construction

    Example:
        async with LanguageTranslatorV2(username="user", password="pass") as client:
            response = await client.translate({"text": "Hello", "model_id": "en-es"})
            result = TranslationResult.from_dict(response.body)
            print(result.text)

            # Callback style
            def on_done(error, response, body):
                print(error or body)

            await client.identify({"text": "Bonjour"}, on_done)
    """

    SERVICE_NAME = "language_translator"
    DEFAULT_URL = "https://gateway.watsonplatform.net/language-translator/api"
    VERSION = "v2"

    # __init__, __aenter__, __aexit__, _request, _send inherited from BaseServiceAPI

    def list_models(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                    **kwargs: Any) -> ServiceRequest:
        """
        List available models.

        Args:
            params: Optional filters: source, target, default
            callback: Optional callback(error, response, body)

        Returns:
            ServiceRequest for GET /v2/models
        """
        return self._request(LIST_MODELS, _merge(params, kwargs), callback)

    def translate(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                  **kwargs: Any) -> ServiceRequest:
        """
        Translate text.

        Args:
            params: text (string or list of strings) plus model_id, or
                source and/or target language
            callback: Optional callback(error, response, body)

        Returns:
            ServiceRequest for POST /v2/translate
        """
        return self._request(TRANSLATE, _merge(params, kwargs), callback)

    def list_identifiable_languages(self, params: Params = None,
                                    callback: Optional[ResponseCallback] = None,
                                    **kwargs: Any) -> ServiceRequest:
        """List the languages the service can identify."""
        return self._request(LIST_IDENTIFIABLE_LANGUAGES, _merge(params, kwargs), callback)

    def identify(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                 **kwargs: Any) -> ServiceRequest:
        """
        Identify the language of a text.

        Args:
            params: text
            callback: Optional callback(error, response, body)

        Returns:
            ServiceRequest for POST /v2/identify
        """
        return self._request(IDENTIFY, _merge(params, kwargs), callback)

    def create_model(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                     **kwargs: Any) -> ServiceRequest:
        """
        Create a custom model from a base model.

        Args:
            params: base_model_id, optional name, and attachments
                forced_glossary, parallel_corpus, monolingual_corpus
                (bytes, file path, or binary file object)
            callback: Optional callback(error, response, body)

        Returns:
            ServiceRequest for POST /v2/models?base_model_id=...
        """
        return self._request(CREATE_MODEL, _merge(params, kwargs), callback)

    def delete_model(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                     **kwargs: Any) -> ServiceRequest:
        """Delete a custom model by model_id."""
        return self._request(DELETE_MODEL, _merge(params, kwargs), callback)

    def get_model(self, params: Params = None, callback: Optional[ResponseCallback] = None,
                  **kwargs: Any) -> ServiceRequest:
        """Get a model by model_id."""
        return self._request(GET_MODEL, _merge(params, kwargs), callback)


def _merge(params: Params, kwargs: Dict[str, Any]) -> Params:
    if not kwargs:
        return params
    return {**(params or {}), **kwargs}
