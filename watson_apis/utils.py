"""
Shared utilities for Watson APIs library.

This module provides the pieces every service client is built from:
- Exceptions
- Credential resolution from options, environment variables and VCAP_SERVICES
- Parameter validation
- Request construction from a fixed operation table
- The awaitable request handle and the aiohttp transport
"""

import asyncio
import base64
import json
import logging
import os
import string
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, Tuple
from urllib.parse import quote, urlencode

import aiohttp
import aiofiles

from .types import HttpMethod, Headers, Params, ResponseCallback, Attachment, ServiceBinding


# Configure logging
logger = logging.getLogger(__name__)

USER_AGENT = "watson-apis-python"


# ==================== Exceptions ====================

class APIError(Exception):
    """Base exception for Watson API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        endpoint: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        response: Optional["ServiceResponse"] = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_text = response_text
        self.endpoint = endpoint
        self.original_error = original_error
        self.response = response
        if status_code is not None:
            message = f"{message} (status {status_code})"
        super().__init__(message)


class ConfigurationError(APIError):
    """Raised when a client cannot be configured, e.g. no usable credentials."""
    pass


class AuthenticationError(APIError):
    """Raised when the service rejects the credentials (401/403)."""
    pass


class ClientError(APIError):
    """Raised when the client is used incorrectly."""
    pass


class RequestError(APIError):
    """Raised when the request fails or the service returns an error status."""
    pass


class InvalidInputError(APIError):
    """Raised when request input is invalid."""
    pass


class MissingParameterError(InvalidInputError):
    """Raised when required operation parameters are missing or empty."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required parameters: {', '.join(self.missing)}")


# ==================== Data Models ====================

@dataclass
class BaseResponse:
    """Base class for response models with dict/JSON conversion."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


@dataclass(frozen=True)
class ServiceConfig:
    """Resolved connection and authentication parameters of a client.

    Hashable; extra headers are kept as (name, value) pairs.
    """
    url: str
    version: str
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    headers: Tuple[Tuple[str, str], ...] = ()
    use_unauthenticated: bool = False

    @property
    def authorization(self) -> Optional[str]:
        """Authorization header value, or None when unauthenticated."""
        if self.use_unauthenticated:
            return None
        if self.token:
            return f"Bearer {self.token}"
        if self.username and self.password:
            raw = f"{self.username}:{self.password}".encode("utf-8")
            return "Basic " + base64.b64encode(raw).decode("ascii")
        return None

    def default_headers(self) -> Headers:
        """Headers sent with every request of this client."""
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        authorization = self.authorization
        if authorization:
            headers["Authorization"] = authorization
        headers.update(self.headers)
        return headers


@dataclass(frozen=True)
class RequestDescriptor:
    """A fully resolved HTTP request, ready for dispatch."""
    method: HttpMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    files: Dict[str, Attachment] = field(default_factory=dict)

    def json(self) -> Any:
        """Decode the JSON body."""
        if self.body is None:
            return None
        return json.loads(self.body.decode("utf-8"))


@dataclass
class ServiceResponse:
    """Response of a dispatched request."""
    status: int
    headers: Dict[str, str]
    body: Any
    url: str

    @property
    def ok(self) -> bool:
        return self.status < 400


# ==================== Credential Resolution ====================

def _has_credentials(credentials: Mapping[str, Any]) -> bool:
    return bool(credentials.get("token")) or bool(
        credentials.get("username") and credentials.get("password")
    )


def find_service_binding(services: Any, service_name: str) -> Optional[ServiceBinding]:
    """
    Find the binding of a service in parsed VCAP_SERVICES data.

    Two shapes are accepted:
    - nested: an object mapping service names to lists of bindings
      ({"language_translator": [{...}]})
    - legacy flat: a list of bindings, each carrying a "label"

    In the nested shape the list keyed by the service name wins; otherwise
    the first binding whose label matches is used.

    Args:
        services: Parsed VCAP_SERVICES JSON
        service_name: Service name, e.g. "language_translator"

    Returns:
        The binding dictionary or None if the service is not bound
    """
    if isinstance(services, list):
        candidates = [b for b in services if isinstance(b, dict)]
    elif isinstance(services, dict):
        keyed = services.get(service_name)
        if isinstance(keyed, list):
            for binding in keyed:
                if isinstance(binding, dict):
                    return binding
        candidates = [
            binding
            for entries in services.values() if isinstance(entries, list)
            for binding in entries if isinstance(binding, dict)
        ]
    else:
        return None

    for binding in candidates:
        if binding.get("label") == service_name:
            return binding
    return None


def credentials_from_vcap(service_name: str, env: Mapping[str, str]) -> Dict[str, str]:
    """Extract username, password and url of a bound service from VCAP_SERVICES."""
    raw = env.get("VCAP_SERVICES")
    if not raw:
        return {}

    try:
        services = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"VCAP_SERVICES is not valid JSON: {e}", original_error=e)

    binding = find_service_binding(services, service_name)
    if binding is None:
        logger.debug(f"No VCAP_SERVICES binding found for {service_name}")
        return {}

    credentials = binding.get("credentials") or {}
    return {
        key: credentials[key]
        for key in ("username", "password", "url")
        if credentials.get(key)
    }


def credentials_from_environment(service_name: str, env: Mapping[str, str]) -> Dict[str, str]:
    """Read <SERVICE>_USERNAME, <SERVICE>_PASSWORD and <SERVICE>_URL."""
    prefix = service_name.upper()
    found = {}
    for key in ("username", "password", "url"):
        value = env.get(f"{prefix}_{key.upper()}")
        if value:
            found[key] = value
    return found


def resolve_credentials(
    service_name: str,
    options: Mapping[str, Any],
    env: Mapping[str, str],
    default_url: str,
    default_version: str
) -> ServiceConfig:
    """
    Resolve the configuration of a service client.

    Explicit options win. When they carry no complete credentials, the
    environment variables and then the VCAP_SERVICES binding are consulted.

    Args:
        service_name: Service name used for env variables and bindings
        options: Explicit client options (username, password, token, url,
            version, headers, use_unauthenticated)
        env: Environment snapshot, e.g. dict(os.environ)
        default_url: Service URL used when nothing else provides one
        default_version: API version used when options do not name one

    Returns:
        Immutable ServiceConfig

    Raises:
        ConfigurationError: If no usable credentials are found or
            VCAP_SERVICES cannot be parsed
    """
    explicit = {
        key: options[key]
        for key in ("username", "password", "url", "token")
        if options.get(key)
    }
    use_unauthenticated = bool(options.get("use_unauthenticated"))
    environment = credentials_from_environment(service_name, env)

    # credentials come whole from the first source that has a complete set
    chosen: Dict[str, str] = {}
    if not use_unauthenticated:
        if _has_credentials(explicit):
            chosen = explicit
        elif _has_credentials(environment):
            chosen = environment
        else:
            bound = credentials_from_vcap(service_name, env)
            if _has_credentials(bound):
                chosen = bound

        if not chosen:
            raise ConfigurationError(
                f"Insufficient credentials provided for {service_name}: "
                f"pass username and password or token, or bind the service through VCAP_SERVICES"
            )

    url = explicit.get("url") or environment.get("url") or chosen.get("url") or default_url

    return ServiceConfig(
        url=url.rstrip("/"),
        version=options.get("version") or default_version,
        username=chosen.get("username"),
        password=chosen.get("password"),
        token=chosen.get("token"),
        headers=tuple((options.get("headers") or {}).items()),
        use_unauthenticated=use_unauthenticated,
    )


# ==================== Validation & Request Construction ====================

def _is_missing(params: Mapping[str, Any], name: str) -> bool:
    value = params.get(name)
    return value is None or value == ""


def validate_params(
    params: Params,
    required: Tuple[str, ...] = (),
    one_of: Tuple[str, ...] = ()
) -> Optional[MissingParameterError]:
    """
    Check required parameters.

    A parameter is missing when it is absent, None or an empty string.
    When `one_of` is given, at least one of its fields must be present.

    Returns:
        MissingParameterError naming the missing fields, or None
    """
    params = params or {}
    missing = [name for name in required if _is_missing(params, name)]
    if one_of and all(_is_missing(params, name) for name in one_of):
        missing.append(" or ".join(one_of))
    if missing:
        return MissingParameterError(missing)
    return None


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Operation:
    """Description of one remote operation."""
    name: str
    method: HttpMethod
    path: str
    required: Tuple[str, ...] = ()
    one_of: Tuple[str, ...] = ()
    query: Tuple[str, ...] = ()
    body: Tuple[str, ...] = ()
    files: Tuple[str, ...] = ()

    @property
    def path_params(self) -> Tuple[str, ...]:
        """Placeholders of the path template."""
        return tuple(name for _, name, _, _ in string.Formatter().parse(self.path) if name)

    def validate(self, params: Params) -> Optional[MissingParameterError]:
        required = tuple(dict.fromkeys(self.required + self.path_params))
        return validate_params(params, required, self.one_of)


def build_request(operation: Operation, params: Params, config: ServiceConfig) -> RequestDescriptor:
    """
    Build the HTTP request of an operation.

    Path placeholders are substituted from params, query fields are
    serialized in the caller's order, JSON body fields become a compact
    UTF-8 JSON body and attachment fields are passed on for a multipart
    form. No I/O happens here.

    Args:
        operation: Operation to build
        params: Validated operation parameters
        config: Client configuration

    Returns:
        RequestDescriptor
    """
    params = params or {}

    path = operation.path.format(**{
        name: quote(str(params[name]), safe="")
        for name in operation.path_params
    })
    url = f"{config.url}{path}"

    query = [
        (key, _query_value(value))
        for key, value in params.items()
        if key in operation.query and value is not None
    ]
    if query:
        url = f"{url}?{urlencode(query)}"

    headers = config.default_headers()
    body = None
    if operation.body:
        fields = {
            key: value
            for key, value in params.items()
            if key in operation.body and value is not None
        }
        body = json.dumps(fields, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        headers["Content-Type"] = "application/json"

    files = {
        key: value
        for key, value in params.items()
        if key in operation.files and value is not None
    }

    headers.update(params.get("headers") or {})

    return RequestDescriptor(
        method=operation.method,
        url=url,
        headers=headers,
        body=body,
        files=files,
    )


# ==================== Transport ====================

def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for key in ("error", "error_message", "message"):
            if body.get(key):
                return str(body[key])
    if isinstance(body, str) and body:
        return body
    return None


async def _read_body(response: aiohttp.ClientResponse) -> Tuple[str, Any]:
    """Read a response body as (text, decoded body)."""
    raw = await response.read()
    text = raw.decode(response.charset or "utf-8", errors="replace")
    if not raw:
        return text, None

    if "json" in (response.content_type or ""):
        try:
            return text, json.loads(text)
        except ValueError:
            logger.warning(f"Invalid JSON response from {response.url}")
    return text, text


async def build_form(files: Mapping[str, Attachment]) -> aiohttp.FormData:
    """
    Assemble a multipart form from attachments.

    Paths are read with aiofiles; binary file objects are read in the
    default executor so a slow file does not block the event loop.

    Args:
        files: Field name -> bytes, file path, or binary file object

    Returns:
        aiohttp.FormData

    Raises:
        InvalidInputError: If an attachment path does not exist or an
            attachment cannot be read
    """
    form = aiohttp.FormData()
    for name, value in files.items():
        try:
            if isinstance(value, (bytes, bytearray)):
                content, filename = bytes(value), name
            elif isinstance(value, (str, Path)):
                path = Path(value)
                if not path.is_file():
                    raise InvalidInputError(f"Attachment file not found: {path}")
                async with aiofiles.open(path, "rb") as f:
                    content = await f.read()
                filename = path.name
            else:
                content = await asyncio.get_running_loop().run_in_executor(None, value.read)
                source_name = getattr(value, "name", None)
                filename = Path(source_name).name if isinstance(source_name, str) else name
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read attachment {name}: {str(e)}")
            raise InvalidInputError(f"Cannot read attachment {name}: {str(e)}", original_error=e)

        form.add_field(
            name,
            content,
            filename=filename,
            content_type="application/octet-stream"
        )
    return form


def _consume_exception(task: "asyncio.Future") -> None:
    # errors of started handles are delivered through the callback
    if not task.cancelled():
        task.exception()


class ServiceRequest:
    """
    Handle of a single service call.

    Returned synchronously by every client operation. The request descriptor
    can be inspected before dispatch; awaiting the handle sends the request
    and returns the ServiceResponse. The optional callback is invoked exactly
    once with (error, response, body); a handle created with a callback inside
    a running event loop is already dispatching.

    Example:
        request = client.translate({"text": "Hello", "model_id": "en-es"})
        print(request.method, request.url)
        response = await request
        print(response.body)
    """

    def __init__(
        self,
        client: "BaseServiceAPI",
        descriptor: Optional[RequestDescriptor] = None,
        callback: Optional[ResponseCallback] = None,
        error: Optional[APIError] = None
    ):
        self._client = client
        self.descriptor = descriptor
        self.error = error
        self._callback = callback
        self._task: Optional["asyncio.Future"] = None
        self._completed = False

        if error is not None:
            self._complete(error, None, None)

    @property
    def method(self) -> Optional[str]:
        return self.descriptor.method if self.descriptor else None

    @property
    def url(self) -> Optional[str]:
        return self.descriptor.url if self.descriptor else None

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self.descriptor.headers) if self.descriptor else {}

    @property
    def body(self) -> Optional[bytes]:
        return self.descriptor.body if self.descriptor else None

    @property
    def files(self) -> Dict[str, Attachment]:
        return dict(self.descriptor.files) if self.descriptor else {}

    @property
    def done(self) -> bool:
        """True once the callback has been invoked."""
        return self._completed

    def _complete(self, error: Optional[Exception], response: Optional[ServiceResponse], body: Any) -> None:
        if self._completed:
            return
        self._completed = True
        if self._callback is not None:
            self._callback(error, response, body)

    async def _dispatch(self) -> ServiceResponse:
        try:
            response = await self._client._send(self.descriptor)
        except APIError as e:
            self.error = e
            body = e.response.body if e.response is not None else None
            self._complete(e, e.response, body)
            raise
        except Exception as e:
            logger.error(f"Unexpected error during dispatch: {str(e)}")
            self._complete(e, None, None)
            raise

        self._complete(None, response, response.body)
        return response

    def _ensure_task(self) -> "asyncio.Future":
        if self._task is None:
            self._task = asyncio.ensure_future(self._dispatch())
        return self._task

    def start(self) -> "ServiceRequest":
        """
        Schedule dispatch on the running event loop without awaiting it.

        The outcome is delivered to the callback; the handle can still be
        awaited later.
        """
        if self.descriptor is not None and self._task is None:
            self._ensure_task().add_done_callback(_consume_exception)
        return self

    async def send(self) -> ServiceResponse:
        """
        Dispatch the request (once) and wait for the response.

        Raises:
            MissingParameterError: If validation failed at call time
            AuthenticationError: If the service returns 401/403
            RequestError: On other error statuses or network failures
        """
        if self.descriptor is None:
            raise self.error
        return await self._ensure_task()

    def __await__(self):
        return self.send().__await__()

    def __repr__(self) -> str:
        if self.descriptor is None:
            return f"<ServiceRequest failed: {self.error}>"
        return f"<ServiceRequest {self.method} {self.url}>"


# ==================== Base Client ====================

class BaseServiceAPI:
    """
    Base async client for Watson services.

    Provides:
    - Credential resolution at construction time
    - Session management (async context manager)
    - Validation and construction of operation requests
    - The aiohttp transport used by request handles

    Subclasses set SERVICE_NAME, DEFAULT_URL and VERSION and expose one
    method per operation built on `_request`.
    """

    SERVICE_NAME = ""
    DEFAULT_URL = ""
    VERSION = ""

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        url: Optional[str] = None,
        version: Optional[str] = None,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        use_unauthenticated: bool = False,
        timeout: int = 60,
        env: Optional[Mapping[str, str]] = None
    ):
        """
        Initialize the service client.

        Args:
            username: Service username (basic auth)
            password: Service password (basic auth)
            url: Service base URL (defaults to the bound or public endpoint)
            version: API version; must match the client class
            token: Bearer token used instead of username/password
            headers: Extra headers sent with every request
            use_unauthenticated: Skip credential lookup entirely
            timeout: Request timeout in seconds (default: 60)
            env: Environment snapshot used for credential lookup
                (defaults to os.environ)

        Raises:
            ConfigurationError: If the version is unsupported or no usable
                credentials are found
        """
        if version is not None and version != self.VERSION:
            raise ConfigurationError(
                f"Unsupported {self.SERVICE_NAME} version {version!r}, expected {self.VERSION!r}"
            )

        options = {
            "username": username,
            "password": password,
            "url": url,
            "version": version,
            "token": token,
            "headers": headers,
            "use_unauthenticated": use_unauthenticated,
        }
        self.config = resolve_credentials(
            self.SERVICE_NAME,
            options,
            os.environ if env is None else env,
            self.DEFAULT_URL,
            self.VERSION,
        )
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"{type(self).__name__} client initialized for {self.config.url}")

    async def __aenter__(self):
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(timeout=self.timeout)
        logger.debug("HTTP session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._session:
            await self._session.close()
            self._session = None
            logger.debug("HTTP session closed")
        return False

    @property
    def default_headers(self) -> Headers:
        """Headers sent with every request, including Authorization."""
        return self.config.default_headers()

    def _request(
        self,
        operation: Operation,
        params: Params,
        callback: Optional[ResponseCallback] = None
    ) -> ServiceRequest:
        """
        Validate and build an operation request.

        With a callback and a running event loop the request is dispatched
        right away; otherwise it is sent when the handle is awaited.
        """
        error = operation.validate(params)
        if error is not None:
            logger.warning(f"{operation.name}: {error}")
            return ServiceRequest(self, callback=callback, error=error)

        descriptor = build_request(operation, params, self.config)
        logger.info(f"{operation.name}: {descriptor.method} {descriptor.url}")
        request = ServiceRequest(self, descriptor, callback=callback)

        if callback is not None:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug(f"{operation.name}: no running event loop, dispatch deferred to await")
            else:
                request.start()
        return request

    async def _send(self, descriptor: RequestDescriptor) -> ServiceResponse:
        """
        Send a request descriptor over the client session.

        Returns:
            ServiceResponse

        Raises:
            ClientError: If the session is not initialized
            InvalidInputError: If an attachment cannot be read
            AuthenticationError: If authentication fails
            RequestError: If request fails
        """
        if not self._session:
            raise ClientError(
                "Session not initialized. Use async context manager.",
                endpoint=descriptor.url
            )

        data: Any = descriptor.body
        if descriptor.files:
            # aiohttp sets the multipart Content-Type with its boundary
            data = await build_form(descriptor.files)

        logger.debug(f"Making {descriptor.method} request to {descriptor.url}")

        try:
            async with self._session.request(
                descriptor.method,
                descriptor.url,
                headers=descriptor.headers,
                data=data
            ) as response:
                text, body = await _read_body(response)
                result = ServiceResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body,
                    url=str(response.url)
                )

        except aiohttp.ClientError as e:
            logger.error(f"Request error: {str(e)}")
            raise RequestError(
                f"Network error: {str(e)}",
                endpoint=descriptor.url,
                original_error=e
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Request timed out: {descriptor.url}")
            raise RequestError(
                "Request timed out",
                endpoint=descriptor.url,
                original_error=e
            )

        # Check for authentication errors
        if result.status in (401, 403):
            raise AuthenticationError(
                _error_message(body) or "Authentication failed",
                status_code=result.status,
                response_text=text,
                endpoint=descriptor.url,
                response=result
            )

        # Check for other errors
        if result.status >= 400:
            raise RequestError(
                _error_message(body) or "Request failed",
                status_code=result.status,
                response_text=text,
                endpoint=descriptor.url,
                response=result
            )

        logger.debug(f"Request successful: {descriptor.method} {descriptor.url}")
        return result
