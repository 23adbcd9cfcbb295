import hashlib
import hmac
import time
from typing import Optional


def data_check_string(payload: dict) -> str:
    """All received fields except ``hash``, as sorted ``key=value`` lines."""
    return "\n".join(
        f"{key}={payload[key]}"
        for key in sorted(payload)
        if key != "hash" and payload[key] is not None
    )


def telegram_signature(payload: dict, bot_token: str) -> str:
    secret_key = hashlib.sha256(bot_token.encode("utf-8")).digest()
    return hmac.new(secret_key, data_check_string(payload).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_telegram_auth(
    payload: dict,
    bot_token: str,
    max_age_seconds: int = 86400,
    now: Optional[float] = None,
) -> bool:
    """
    Check a Telegram Login Widget payload.

    The signature is HMAC-SHA256 of the data-check-string keyed with
    SHA256(bot_token); ``auth_date`` must be younger than ``max_age_seconds``.
    """
    received = str(payload.get("hash") or "")
    if not received or not bot_token:
        return False

    try:
        auth_date = int(payload.get("auth_date"))
    except (TypeError, ValueError):
        return False

    now = time.time() if now is None else now
    if now - auth_date >= max_age_seconds:
        return False

    return hmac.compare_digest(telegram_signature(payload, bot_token), received)
