"""Pytest configuration and fixtures for the client tests."""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from watson_apis import LanguageTranslatorV2


SERVICE = {
    "username": "batman",
    "password": "bruce-wayne",
    "url": "http://ibm.com:80",
    "version": "v2",
}

BINDING = {
    "credentials": {
        "password": "FAKE_PASSWORD",
        "url": "https://gateway.watsonplatform.net/language-translator/api",
        "username": "FAKE_USERNAME",
    },
    "label": "language_translator",
    "name": "Language Translator-4t",
    "plan": "standard",
    "provider": None,
    "syslog_drain_url": None,
    "tags": ["watson", "ibm_created", "ibm_dedicated_public"],
}


class CallbackRecorder:
    """Collects (error, response, body) completions."""

    def __init__(self):
        self.calls: List[Tuple[Any, Any, Any]] = []

    def __call__(self, error, response, body):
        self.calls.append((error, response, body))

    @property
    def error(self):
        return self.calls[-1][0]

    @property
    def response(self):
        return self.calls[-1][1]

    @property
    def body(self):
        return self.calls[-1][2]


class FakeTranslatorService:
    """Local stand-in for the translation service that records requests."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self._replies: Dict[Tuple[str, str], Tuple[int, Optional[Any]]] = {}
        self.url = ""

    def reply(self, method: str, path: str, status: int = 200, body: Optional[Any] = None) -> None:
        self._replies[(method, path)] = (status, body)

    async def handle(self, request: web.Request) -> web.Response:
        record: Dict[str, Any] = {
            "method": request.method,
            "path": request.path,
            "query": list(request.query.items()),
            "headers": dict(request.headers),
        }
        if request.content_type == "multipart/form-data":
            form = await request.post()
            record["form"] = {
                name: (value.filename, value.file.read()) if isinstance(value, web.FileField) else value
                for name, value in form.items()
            }
        else:
            raw = await request.read()
            record["body"] = json.loads(raw) if raw else None
        self.requests.append(record)

        status, body = self._replies.get((request.method, request.path), (200, {}))
        if body is None:
            return web.Response(status=status)
        return web.json_response(body, status=status)

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app


@pytest.fixture
def callback() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def translator() -> LanguageTranslatorV2:
    """Client with explicit credentials and an empty environment."""
    return LanguageTranslatorV2(env={}, **SERVICE)


@pytest_asyncio.fixture
async def fake_service():
    service = FakeTranslatorService()
    async with TestServer(service.app()) as server:
        service.url = f"http://{server.host}:{server.port}"
        yield service


@pytest_asyncio.fixture
async def live_translator(fake_service):
    """Client with an open session pointed at the fake service."""
    client = LanguageTranslatorV2(
        username=SERVICE["username"],
        password=SERVICE["password"],
        url=fake_service.url,
        env={},
    )
    async with client:
        yield client
