"""Cliente HTTP centralizado do backend StayFinder.

Fornece, para todas as chamadas de serviço:
- Base URL e timeout configuráveis
- Header Bearer com o token persistido, quando presente
- Desembrulho do envelope {success, message, data, timestamp}
- Normalização de toda falha em ApiError (mensagem exibível)
- Tratamento global de 401 (sessão encerrada + redirect para login)
- Retry opcional com backoff exponencial para falhas transitórias
- Logging estruturado (sem tokens ou payloads)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from stayfinder.config.settings import DEFAULT_API_URL
from stayfinder.errors import GENERIC_ERROR_MESSAGE, ApiError, UnauthorizedError
from stayfinder.observability.context import correlation_scope
from stayfinder.observability.logging import get_logger

if TYPE_CHECKING:
    from stayfinder.config.settings import Settings
    from stayfinder.infra.request_scope import RequestScope

logger: logging.Logger = get_logger(__name__)

# Regex pré-compilado para sanitização de URL
_SECRET_PARAM_PATTERN = re.compile(r"(token|password)=[^&]+", re.IGNORECASE)

TokenProvider = Callable[[], "str | None"]
UnauthorizedHandler = Callable[[], None]


def _sanitize_url(url: str) -> str:
    """Remove tokens e senhas da URL para logging seguro."""
    return _SECRET_PARAM_PATTERN.sub(r"\1=***", url)


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP.

    Retry desabilitado por padrão: o cache de consultas decide a política.
    """

    base_url: str = DEFAULT_API_URL
    timeout_seconds: float = 30.0
    max_retries: int = 0
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    default_headers: dict[str, str] = field(
        default_factory=lambda: {"Accept": "application/json"}
    )
    verify_ssl: bool = True
    correlation_id_header: str = "X-Correlation-ID"


def _is_retryable_status(status_code: int) -> bool:
    """Determina se status HTTP permite retry (429 ou 5xx)."""
    return status_code == 429 or 500 <= status_code < 600


def _calculate_backoff(
    attempt: int,
    base_seconds: float,
    max_seconds: float,
) -> float:
    """Calcula tempo de espera com backoff exponencial."""
    backoff = (2**attempt) * base_seconds
    return min(backoff, max_seconds)


def normalize_error_message(
    server_message: Any = None,
    transport_message: str | None = None,
) -> str:
    """Mensagem do servidor → mensagem do transporte → genérica."""
    if isinstance(server_message, str) and server_message.strip():
        return server_message
    if transport_message:
        return transport_message
    return GENERIC_ERROR_MESSAGE


def unwrap_envelope(body: Any) -> Any:
    """Retorna `data` de um envelope {success, data, ...}; senão o corpo."""
    if isinstance(body, dict) and "success" in body and "data" in body:
        return body["data"]
    return body


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _log_request_failure(method: str, url: str, status_code: int, retryable: bool) -> None:
    """Loga resposta de erro do backend."""
    logger.warning(
        "Requisição HTTP falhou",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "status_code": status_code,
            "retryable": retryable,
        },
    )


def _log_transient_error(method: str, url: str, attempt: int, exc: Exception) -> None:
    """Loga erro transitório (timeout, conexão)."""
    logger.warning(
        "Erro de transporte em requisição HTTP",
        extra={
            "method": method,
            "url": _sanitize_url(url),
            "attempt": attempt + 1,
            "error_type": type(exc).__name__,
        },
    )


def _log_backoff(backoff: float, next_attempt: int) -> None:
    """Loga aguardo de backoff."""
    logger.info(
        "Aguardando backoff antes de retry",
        extra={"backoff_seconds": backoff, "next_attempt": next_attempt},
    )


class HttpClient:
    """Cliente HTTP assíncrono do backend.

    Uso típico:
        async with HttpClient(config, token_provider=tokens.get_token) as client:
            data = await client.get("/properties", params={"page": 1})
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        token_provider: TokenProvider | None = None,
        on_unauthorized: UnauthorizedHandler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or HttpClientConfig()
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> HttpClientConfig:
        return self._config

    def set_unauthorized_handler(self, handler: UnauthorizedHandler | None) -> None:
        self._on_unauthorized = handler

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/") + "/",
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                verify=self._config.verify_ssl,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        """Suporte a async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Fecha cliente ao sair do context."""
        await self.close()

    def with_scope(self, scope: RequestScope) -> ScopedHttpClient:
        """Visão deste cliente cujas requisições pertencem a `scope`."""
        return ScopedHttpClient(self, scope)

    def _build_headers(
        self,
        headers: Mapping[str, str] | None,
        correlation_id: str,
    ) -> dict[str, str]:
        request_headers = dict(headers or {})
        request_headers[self._config.correlation_id_header] = correlation_id
        token = self._token_provider() if self._token_provider else None
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        return request_headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        scope: RequestScope | None = None,
        **kwargs: Any,
    ) -> Any:
        """Executa requisição e retorna o `data` desembrulhado.

        Args:
            method: Método HTTP
            path: Caminho relativo à base URL (ex: "/auth/me")
            scope: Escopo de cancelamento opcional
            **kwargs: params, json, data, files, headers

        Raises:
            ApiError: Falha normalizada (UnauthorizedError em 401)
            RequestCancelledError: Escopo fechado antes da resposta
        """
        if scope is not None:
            scope.ensure_open()
            return await scope.run(self._execute(method, path, **kwargs))
        return await self._execute(method, path, **kwargs)

    async def _execute(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        url = path.lstrip("/")
        with correlation_scope() as correlation_id:
            request_headers = self._build_headers(headers, correlation_id)
            response = await self._request_with_retry(
                method, url, headers=request_headers, **kwargs
            )
            return self._handle_response(response, method, url)

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa requisição com retry para falhas transitórias.

        Respostas de erro não retentáveis (e a última tentativa) são
        devolvidas para normalização em _handle_response.
        """
        client = await self._get_client()
        cfg = self._config

        for attempt in range(cfg.max_retries + 1):
            logger.debug(
                "Executando requisição HTTP",
                extra={"method": method, "url": _sanitize_url(url), "attempt": attempt + 1},
            )
            has_next = attempt < cfg.max_retries

            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                _log_transient_error(method, url, attempt, exc)
                if not has_next:
                    raise ApiError(
                        normalize_error_message(transport_message=str(exc) or type(exc).__name__),
                        is_retryable=True,
                    ) from exc
            else:
                if not (has_next and _is_retryable_status(response.status_code)):
                    return response
                _log_request_failure(method, url, response.status_code, retryable=True)

            await self._wait_backoff(attempt)

        raise ApiError(GENERIC_ERROR_MESSAGE)  # pragma: no cover - loop sempre retorna

    def _handle_response(self, response: httpx.Response, method: str, url: str) -> Any:
        body = _parse_body(response)

        if response.is_success:
            logger.debug(
                "Requisição HTTP bem-sucedida",
                extra={
                    "method": method,
                    "url": _sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            return unwrap_envelope(body)

        server_message = body.get("message") if isinstance(body, dict) else None
        errors = body.get("errors") if isinstance(body, dict) else None
        message = normalize_error_message(
            server_message,
            f"Request failed with status code {response.status_code}",
        )
        field_errors = errors if isinstance(errors, list) else None
        _log_request_failure(
            method, url, response.status_code, _is_retryable_status(response.status_code)
        )

        if response.status_code == 401:
            self._handle_unauthorized()
            raise UnauthorizedError(message, errors=field_errors)

        raise ApiError(
            message,
            status_code=response.status_code,
            errors=field_errors,
            is_retryable=_is_retryable_status(response.status_code),
        )

    def _handle_unauthorized(self) -> None:
        logger.warning("unauthorized_response_session_ended")
        if self._on_unauthorized is not None:
            self._on_unauthorized()

    async def _wait_backoff(self, attempt: int) -> None:
        """Aguarda backoff antes da próxima tentativa."""
        cfg = self._config
        backoff = _calculate_backoff(attempt, cfg.backoff_base_seconds, cfg.backoff_max_seconds)
        _log_backoff(backoff, attempt + 2)
        await asyncio.sleep(backoff)

    # Métodos de conveniência

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)


class ScopedHttpClient:
    """Mesma interface do HttpClient, amarrada a um RequestScope."""

    def __init__(self, client: HttpClient, scope: RequestScope) -> None:
        self._client = client
        self.scope = scope

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        return await self._client.request(method, path, scope=self.scope, **kwargs)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)


def create_http_client(
    settings: Settings | None = None,
    token_provider: TokenProvider | None = None,
    on_unauthorized: UnauthorizedHandler | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpClient:
    """Factory para criar cliente HTTP configurado.

    Args:
        settings: Configurações do cliente. Se None, usa get_settings()
        token_provider: Fonte do token Bearer
        on_unauthorized: Chamado em toda resposta 401
        transport: Transporte httpx alternativo (ex: MockTransport em testes)
    """
    if settings is None:
        from stayfinder.config.settings import get_settings

        settings = get_settings()

    config = HttpClientConfig(
        base_url=settings.api_base_url,
        timeout_seconds=float(settings.http_timeout_seconds),
        max_retries=settings.http_max_retries,
        backoff_base_seconds=float(settings.http_retry_backoff_seconds),
        backoff_max_seconds=float(settings.http_retry_backoff_max_seconds),
        default_headers={
            "Accept": "application/json",
            "User-Agent": f"{settings.service_name}/{settings.version}",
        },
        correlation_id_header=settings.correlation_id_header,
    )

    logger.info(
        "Cliente HTTP criado",
        extra={
            "base_url": _sanitize_url(config.base_url),
            "timeout_seconds": config.timeout_seconds,
            "max_retries": config.max_retries,
        },
    )

    return HttpClient(
        config,
        token_provider=token_provider,
        on_unauthorized=on_unauthorized,
        transport=transport,
    )
