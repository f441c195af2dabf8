"""Codificação reversível dos valores persistidos pelo cliente.

Regra: valor persistido = base64(JSON(valor)). Não é criptografia: apenas
evita texto puro acidental no armazenamento. Trate como texto claro.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any


def encode_value(value: Any) -> str:
    """Serializa e codifica um valor JSON-compatível."""

    raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_value(encoded: str) -> Any:
    """Inverte encode_value.

    Raises:
        ValueError: Se o valor não for base64 válido ou não contiver JSON
    """

    try:
        raw = base64.b64decode(encoded.encode("ascii"), validate=True)
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValueError("Valor persistido inválido") from exc


def decode_jwt_payload(token: str) -> dict[str, Any] | None:
    """Lê o segmento de payload de um JWT sem verificar assinatura.

    Aceita base64url com ou sem padding. Retorna None se malformado.
    """

    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None

    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None

    return payload if isinstance(payload, dict) else None
