"""Camada de infraestrutura: HTTP e persistência local.

Este módulo exporta:

- HTTP: HttpClient, HttpClientConfig, create_http_client
- Storage: InMemoryStorage, FileStorage, RedisStorage, create_storage
- RequestScope: cancelamento de requisições por tela

Uso típico:
    from stayfinder.infra import create_http_client, create_storage

Infraestrutura não decide regra de negócio; logs estruturados sem PII.
"""

from stayfinder.infra.http import (
    HttpClient,
    HttpClientConfig,
    ScopedHttpClient,
    create_http_client,
)
from stayfinder.infra.request_scope import RequestScope
from stayfinder.infra.storage import (
    FileStorage,
    InMemoryStorage,
    KeyValueStorage,
    RedisStorage,
    create_storage,
)

__all__ = [
    "HttpClient",
    "HttpClientConfig",
    "ScopedHttpClient",
    "create_http_client",
    "RequestScope",
    "KeyValueStorage",
    "InMemoryStorage",
    "FileStorage",
    "RedisStorage",
    "create_storage",
]
