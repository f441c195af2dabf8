"""Armazenamento chave-valor do cliente (token e snapshot do usuário).

Substitui o storage do navegador. Implementações:
- InMemoryStorage: dev/testes (não sobrevive a reinício do processo)
- FileStorage: arquivo JSON local (sobrevive a reinício)
- RedisStorage: compartilhado entre processos
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from stayfinder.errors import StorageError
from stayfinder.observability.logging import get_logger

if TYPE_CHECKING:
    from stayfinder.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


class KeyValueStorage(ABC):
    """Contrato mínimo de persistência (strings por chave)."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Retorna valor ou None se ausente/indisponível."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Persiste valor; levanta StorageError em falha."""
        ...

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Remove chave. Retorna True se existia."""
        ...


class InMemoryStorage(KeyValueStorage):
    """Armazenamento em memória (não usar em produção)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        logger.debug("Value stored (in-memory)", extra={"key": key})

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def snapshot(self) -> dict[str, str]:
        """Cópia do conteúdo (útil em testes)."""
        return dict(self._data)


class FileStorage(KeyValueStorage):
    """Arquivo JSON com todas as chaves; escrita atômica via replace."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error(
                "Failed to read storage file",
                extra={"path": str(self._path), "error_type": type(e).__name__},
            )
            return {}

        try:
            data = json.loads(content)
        except ValueError:
            logger.warning("Storage file corrupted, ignoring", extra={"path": str(self._path)})
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".stayfinder-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_name, self._path)
        except OSError as e:
            logger.error(
                "Failed to write storage file",
                extra={"path": str(self._path), "error_type": type(e).__name__},
            )
            raise StorageError(f"File storage write failed: {e}") from e

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)
        logger.debug("Value stored (file)", extra={"key": key})

    def remove(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return False
        del data[key]
        self._write_all(data)
        return True


class RedisStorage(KeyValueStorage):
    """Armazenamento em Redis com conexão lazy."""

    def __init__(
        self,
        redis_url: str | None = None,
        key_prefix: str = "stayfinder:",
        client: Any = None,
    ) -> None:
        if redis_url is None and client is None:
            raise ValueError("redis_url ou client é obrigatório")
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._client = client

    def _get_client(self) -> Any:
        """Retorna cliente Redis (lazy loading)."""
        if self._client is None:
            import redis

            self._client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            logger.info(
                "Conexão Redis configurada",
                extra={"url": (self._redis_url or "").split("@")[-1]},  # Sem credenciais
            )
        return self._client

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def get(self, key: str) -> str | None:
        try:
            value = self._get_client().get(self._make_key(key))
        except Exception as e:
            logger.error(
                "Failed to read from Redis",
                extra={"key": key, "error_type": type(e).__name__},
            )
            return None

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value or None

    def set(self, key: str, value: str) -> None:
        try:
            self._get_client().set(self._make_key(key), value)
        except Exception as e:
            logger.error(
                "Failed to write to Redis",
                extra={"key": key, "error_type": type(e).__name__},
            )
            raise StorageError(f"Redis write failed: {e}") from e

    def remove(self, key: str) -> bool:
        try:
            deleted = self._get_client().delete(self._make_key(key))
        except Exception as e:
            logger.error(
                "Failed to delete from Redis",
                extra={"key": key, "error_type": type(e).__name__},
            )
            raise StorageError(f"Redis delete failed: {e}") from e
        return bool(deleted)


def create_storage(settings: Settings | None = None) -> KeyValueStorage:
    """Factory para criar o armazenamento configurado.

    Usa settings.token_store_backend:
    - "memory": InMemoryStorage (dev/testes)
    - "file": FileStorage em settings.token_store_path
    - "redis": RedisStorage em settings.redis_url

    Raises:
        ValueError: Se backend não reconhecido ou sem configuração obrigatória
    """
    if settings is None:
        from stayfinder.config.settings import get_settings

        settings = get_settings()

    backend = settings.token_store_backend.lower()
    if backend == "memory":
        logger.info("Usando InMemoryStorage (apenas dev/testes)")
        return InMemoryStorage()

    if backend == "file":
        logger.info("Usando FileStorage", extra={"path": settings.token_store_path})
        return FileStorage(settings.token_store_path)

    if backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL é obrigatório quando token_store_backend=redis")
        logger.info("Usando RedisStorage", extra={"key_prefix": settings.redis_key_prefix})
        return RedisStorage(settings.redis_url, key_prefix=settings.redis_key_prefix)

    raise ValueError(f"Backend de armazenamento não reconhecido: {backend}")
