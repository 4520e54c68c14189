from __future__ import annotations

import secrets
import string

from daycare.config import settings
from daycare.core.time_provider import TimeProvider, default_time_provider


_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def _generate_code(prefix: str, *, time_provider: TimeProvider, suffix_length: int = 4) -> str:
    # Last six digits of the epoch milliseconds keep codes short; the random suffix separates
    # codes issued in the same millisecond. Uniqueness is enforced by the storage constraints.
    stamp = str(int(time_provider.now().timestamp() * 1000))[-6:]
    suffix = ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(suffix_length))
    return f'{prefix}{stamp}{suffix}'


def generate_subscription_code(*, time_provider: TimeProvider = default_time_provider) -> str:
    return _generate_code(settings.subscription_code_prefix, time_provider=time_provider)


def generate_invoice_number(*, time_provider: TimeProvider = default_time_provider) -> str:
    return _generate_code(settings.invoice_number_prefix, time_provider=time_provider)
