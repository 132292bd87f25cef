from typing import Any

from cellcastapi.config import Configuration, ResponseFormat
from cellcastapi.models.envelope import (
    BothResult,
    EnhancedResponse,
    EnhancedResult,
    NormalizedResult,
    RawResult,
    is_success,
    meta_of,
)

LOW_BALANCE_ALERT_FIELD = "low_sms_alert"
BALANCE_FIELDS = ("sms_balance", "balance")


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _find_balance(envelope: dict[str, Any]) -> float | None:
    data = envelope.get("data")
    for source in (envelope, data if isinstance(data, dict) else {}):
        for name in BALANCE_FIELDS:
            if name in source:
                balance = _to_number(source[name])
                if balance is not None:
                    return balance
    return None


def low_balance_warning(envelope: Any, threshold: float) -> str | None:
    # low_sms_alert alone only counts when no numeric balance is present
    if not isinstance(envelope, dict):
        return None
    alert = envelope.get(LOW_BALANCE_ALERT_FIELD)
    alert = alert.strip() if isinstance(alert, str) else None
    balance = _find_balance(envelope)
    if balance is None:
        return alert or None
    if balance < threshold:
        return alert or f"SMS balance {balance:g} is below the threshold of {threshold:g}"
    return None


def _enhance_one(envelope: dict[str, Any], threshold: float) -> EnhancedResponse:
    meta = meta_of(envelope)
    extra = {
        key: envelope[key]
        for key in ("page", "total")
        if key in envelope
    }
    return EnhancedResponse(
        success=is_success(envelope),
        status_code=meta.get("code"),
        status=meta.get("status"),
        message=envelope.get("msg"),
        data=envelope.get("data"),
        low_balance_warning=low_balance_warning(envelope, threshold),
        extra=extra,
    )


def _enhance_many(envelopes: list[Any], threshold: float) -> EnhancedResponse:
    # Bulk sends answer with one envelope per item; report the first failure.
    items = [e for e in envelopes if isinstance(e, dict)]
    failed = [e for e in items if not is_success(e)]
    lead = failed[0] if failed else (items[0] if items else {})
    meta = meta_of(lead)
    warnings = [w for w in (low_balance_warning(e, threshold) for e in items) if w]
    return EnhancedResponse(
        success=is_success(envelopes),
        status_code=meta.get("code"),
        status=meta.get("status"),
        message=lead.get("msg"),
        data=[e.get("data") for e in items],
        low_balance_warning=warnings[0] if warnings else None,
    )


def enhance(envelope: Any, threshold: float) -> EnhancedResponse:
    if isinstance(envelope, list):
        return _enhance_many(envelope, threshold)
    return _enhance_one(envelope, threshold)


def normalize(envelope: Any, config: Configuration) -> NormalizedResult:
    fmt = config.response_format
    if fmt is ResponseFormat.RAW:
        return RawResult(envelope=envelope, success=is_success(envelope))
    if fmt is ResponseFormat.ENHANCED:
        return EnhancedResult(response=enhance(envelope, config.low_balance_threshold))
    if fmt is ResponseFormat.BOTH:
        raw = RawResult(envelope=envelope, success=is_success(envelope))
        return BothResult(raw=raw, enhanced=enhance(envelope, config.low_balance_threshold))
    raise ValueError(f"Unsupported response format: {fmt}")
