"""Configurações do cliente via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou de um arquivo .env
na raiz do processo). Nunca hardcode tokens ou credenciais.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------------------------------------------------------------
# Constantes do backend StayFinder
# -----------------------------------------------------------------------------
DEFAULT_API_URL: str = "http://localhost:5000/api"
TOKEN_KEY: str = "stayfinder_token"
USER_KEY: str = "stayfinder_user"

VALID_TOKEN_STORE_BACKENDS = frozenset({"memory", "file", "redis"})
VALID_LOG_FORMATS = frozenset({"json", "text"})


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Aplicação
    service_name: str = "stayfinder"
    version: str = "0.1.0"
    environment: str = "development"

    # Backend REST
    api_url: str = DEFAULT_API_URL
    http_timeout_seconds: float = 30.0
    http_max_retries: int = 0  # Retry fica com o cache de consultas
    http_retry_backoff_seconds: float = 1.0
    http_retry_backoff_max_seconds: float = 30.0

    # Persistência do token e do usuário
    token_store_backend: str = "memory"  # memory | file | redis
    token_store_path: str = ".stayfinder/session.json"
    redis_url: str | None = None
    redis_key_prefix: str = "stayfinder:"
    token_key: str = TOKEN_KEY
    user_key: str = USER_KEY
    token_refresh_lead_seconds: float = 300.0

    # Cache de dados remotos
    query_stale_seconds: float = 300.0
    query_retry: int = 1

    # Geolocalização
    geolocation_timeout_seconds: float = 10.0

    # Navegação
    login_path: str = "/login"
    home_path: str = "/"

    # Reset de senha: 404 tratado como sucesso (modo demonstração do backend)
    password_reset_soft_404: bool = True

    # Observabilidade
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    correlation_id_header: str = "X-Correlation-ID"

    @property
    def api_base_url(self) -> str:
        """URL base do backend sem barra final."""
        return self.api_url.rstrip("/")

    def validate_token_store_config(self) -> list[str]:
        """Valida backend de persistência do token por ambiente.

        Retorna lista de erros (vazia = OK).
        """
        errors: list[str] = []
        backend = self.token_store_backend.lower()

        if backend not in VALID_TOKEN_STORE_BACKENDS:
            errors.append(
                f"TOKEN_STORE_BACKEND '{backend}' inválido. "
                f"Valores válidos: {sorted(VALID_TOKEN_STORE_BACKENDS)}"
            )

        # Em memória a sessão não sobrevive a um reinício do processo
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "TOKEN_STORE_BACKEND=memory é proibido em staging/production. "
                "Configure 'file' ou 'redis'."
            )

        if backend == "redis" and not self.redis_url:
            errors.append("TOKEN_STORE_BACKEND=redis requer REDIS_URL configurado")

        if backend == "file" and not self.token_store_path:
            errors.append("TOKEN_STORE_BACKEND=file requer TOKEN_STORE_PATH configurado")

        if not self.token_key or not self.user_key:
            errors.append("TOKEN_KEY e USER_KEY não podem ser vazios")
        elif self.token_key == self.user_key:
            errors.append("TOKEN_KEY e USER_KEY devem ser diferentes")

        return errors

    def validate_http_config(self) -> list[str]:
        """Valida URL do backend e parâmetros de timeout/retry."""
        errors: list[str] = []
        if not self.api_url.startswith(("http://", "https://")):
            errors.append("API_URL deve começar com http:// ou https://")
        elif self.is_production and self.api_url.startswith("http://"):
            errors.append("API_URL deve usar https em production")
        if self.http_timeout_seconds <= 0:
            errors.append("HTTP_TIMEOUT_SECONDS deve ser > 0")
        if self.http_max_retries < 0:
            errors.append("HTTP_MAX_RETRIES deve ser >= 0")
        return errors

    def validate_query_config(self) -> list[str]:
        """Valida parâmetros do cache de consultas e da sessão."""
        errors: list[str] = []
        if self.query_stale_seconds < 0:
            errors.append("QUERY_STALE_SECONDS deve ser >= 0")
        if self.query_retry < 0:
            errors.append("QUERY_RETRY deve ser >= 0")
        if self.token_refresh_lead_seconds < 0:
            errors.append("TOKEN_REFRESH_LEAD_SECONDS deve ser >= 0")
        if self.geolocation_timeout_seconds <= 0:
            errors.append("GEOLOCATION_TIMEOUT_SECONDS deve ser > 0")
        return errors

    def validate_observability_config(self) -> list[str]:
        """Valida formato de log."""
        errors: list[str] = []
        if self.log_format.lower() not in VALID_LOG_FORMATS:
            errors.append("LOG_FORMAT inválido: use json | text")
        return errors

    def validate_all(self) -> list[str]:
        """Agrega todos os erros de configuração."""
        return [
            *self.validate_http_config(),
            *self.validate_token_store_config(),
            *self.validate_query_config(),
            *self.validate_observability_config(),
        ]

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna instância única de Settings (cacheada)."""
    return Settings()
