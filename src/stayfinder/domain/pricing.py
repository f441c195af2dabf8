"""Cálculo de preço de reservas.

Regras:
- noites = ceil(|check_out - check_in| em dias)
- subtotal: semana → ceil(noites/7) * preço; mês → ceil(noites/30) * preço;
  noite → noites * preço
- taxa de serviço = taxa informada, senão round(subtotal * 0.12)
- total = subtotal + limpeza + serviço
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from stayfinder.domain.enums import PricePeriod
from stayfinder.domain.models import PriceBreakdown

SERVICE_FEE_RATE = 0.12
_SECONDS_PER_DAY = 86400


def _as_datetime(value: date | datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(value)


def calculate_nights(
    check_in: date | datetime | str,
    check_out: date | datetime | str,
) -> int:
    """Número de noites entre duas datas (arredondado para cima)."""
    delta = _as_datetime(check_out) - _as_datetime(check_in)
    return math.ceil(abs(delta.total_seconds()) / _SECONDS_PER_DAY)


def calculate_subtotal(price: float, period: PricePeriod | str, nights: int) -> float:
    period = PricePeriod(period)
    if period is PricePeriod.WEEK:
        return math.ceil(nights / 7) * price
    if period is PricePeriod.MONTH:
        return math.ceil(nights / 30) * price
    return nights * price


def calculate_service_fee(subtotal: float, custom_fee: float | None = None) -> float:
    if custom_fee is not None:
        return custom_fee
    return round(subtotal * SERVICE_FEE_RATE)


def calculate_booking_price(
    property_data: Mapping[str, Any],
    check_in: date | datetime | str,
    check_out: date | datetime | str,
) -> PriceBreakdown:
    """Detalha o preço de uma estadia para a propriedade do backend.

    Lê `price`, `pricePeriod`, `cleaningFee` e `serviceFee` (camelCase).
    """
    nights = calculate_nights(check_in, check_out)
    price = float(property_data.get("price") or 0)
    period = PricePeriod(property_data.get("pricePeriod") or PricePeriod.NIGHT)
    cleaning_fee = float(property_data.get("cleaningFee") or 0)
    custom_fee = property_data.get("serviceFee")

    subtotal = calculate_subtotal(price, period, nights)
    service_fee = calculate_service_fee(
        subtotal, float(custom_fee) if custom_fee is not None else None
    )

    return PriceBreakdown(
        nights=nights,
        subtotal=subtotal,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        total=subtotal + cleaning_fee + service_fee,
        price_per_night=price,
        price_period=period,
    )
