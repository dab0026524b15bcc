"""
OTP Verification Service

Phone verification with short-lived numeric codes sent over SMS.

Rules:
    - Codes are ``otp_length`` digits and live for ``otp_ttl_seconds``
    - A new code cannot be requested until the previous one is
      ``otp_resend_cooldown_seconds`` old
    - ``otp_max_attempts`` wrong guesses burn the code
    - A successful verification marks the phone verified for one TTL window

Storage follows the hybrid pattern: an in-process dictionary in development
and Redis in staging/production so codes survive across workers.
"""

import hashlib
import hmac
import json
import logging
import re
import secrets
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Callable, Optional

import redis.asyncio as aioredis

from foodapp.core.config import get_settings, mask_phone
from foodapp.core.errors import AppError, RateLimitError, ValidationError
from foodapp.services.notifications import get_notification_service
from foodapp.services.notifications.messages import otp_text

logger = logging.getLogger(__name__)


# =============================================================================
# STORES
# =============================================================================

class OTPStore(ABC):
    """Key/value store for pending codes and verified phones."""

    @abstractmethod
    async def get(self, phone: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def put(self, phone: str, record: dict, ttl: int) -> None:
        pass

    @abstractmethod
    async def delete(self, phone: str) -> None:
        pass

    @abstractmethod
    async def mark_verified(self, phone: str, ttl: int) -> None:
        pass

    @abstractmethod
    async def is_verified(self, phone: str) -> bool:
        pass


class MemoryOTPStore(OTPStore):
    """Single-process store used in development and tests."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._codes: dict[str, tuple[dict, float]] = {}
        self._verified: dict[str, float] = {}

    async def get(self, phone: str) -> Optional[dict]:
        entry = self._codes.get(phone)
        if entry is None:
            return None
        record, expires = entry
        if self._clock() >= expires:
            self._codes.pop(phone, None)
            return None
        return dict(record)

    async def put(self, phone: str, record: dict, ttl: int) -> None:
        self._codes[phone] = (dict(record), self._clock() + ttl)

    async def delete(self, phone: str) -> None:
        self._codes.pop(phone, None)

    async def mark_verified(self, phone: str, ttl: int) -> None:
        self._verified[phone] = self._clock() + ttl

    async def is_verified(self, phone: str) -> bool:
        expires = self._verified.get(phone)
        if expires is None:
            return False
        if self._clock() >= expires:
            self._verified.pop(phone, None)
            return False
        return True


class RedisOTPStore(OTPStore):
    """Redis-backed store; keys expire on their own."""

    CODE_PREFIX = "otp:code:"
    VERIFIED_PREFIX = "otp:verified:"

    def __init__(self, redis_url: str):
        self._redis = aioredis.from_url(redis_url, decode_responses=True)

    async def get(self, phone: str) -> Optional[dict]:
        raw = await self._redis.get(self.CODE_PREFIX + phone)
        return json.loads(raw) if raw else None

    async def put(self, phone: str, record: dict, ttl: int) -> None:
        await self._redis.set(self.CODE_PREFIX + phone, json.dumps(record), ex=max(ttl, 1))

    async def delete(self, phone: str) -> None:
        await self._redis.delete(self.CODE_PREFIX + phone)

    async def mark_verified(self, phone: str, ttl: int) -> None:
        await self._redis.set(self.VERIFIED_PREFIX + phone, "1", ex=ttl)

    async def is_verified(self, phone: str) -> bool:
        return bool(await self._redis.exists(self.VERIFIED_PREFIX + phone))


# =============================================================================
# SERVICE
# =============================================================================

class OTPService:
    """Issue and check one-time codes."""

    def __init__(self, store: OTPStore, clock: Callable[[], float] = time.time):
        settings = get_settings()
        self.store = store
        self.clock = clock
        self.length = settings.otp_length
        self.ttl = settings.otp_ttl_seconds
        self.max_attempts = settings.otp_max_attempts
        self.cooldown = settings.otp_resend_cooldown_seconds
        self.country_code = settings.default_country_code

    def normalize_phone(self, phone: str) -> str:
        """Strip formatting and add the default country code when missing."""
        phone = phone.strip()
        if phone.startswith("+"):
            return "+" + re.sub(r"\D", "", phone)
        digits = re.sub(r"\D", "", phone).lstrip("0")
        return f"{self.country_code}{digits}"

    def _generate_code(self) -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(self.length))

    @staticmethod
    def _hash(code: str) -> str:
        return hashlib.sha256(code.encode()).hexdigest()

    async def send(self, phone: str) -> int:
        """
        Generate a code and text it to ``phone``.

        Returns:
            Seconds until the code expires

        Raises:
            RateLimitError: previous code is younger than the cooldown
            AppError: SMS gateway refused the message (502)
        """
        phone = self.normalize_phone(phone)
        now = self.clock()

        existing = await self.store.get(phone)
        if existing and now - existing["created_at"] < self.cooldown:
            wait = int(self.cooldown - (now - existing["created_at"])) + 1
            raise RateLimitError(
                f"Please wait {wait} seconds before requesting a new OTP.",
                details={"retry_after": wait},
            )

        code = self._generate_code()
        record = {
            "code_hash": self._hash(code),
            "created_at": now,
            "expires_at": now + self.ttl,
            "attempts": 0,
        }
        await self.store.put(phone, record, self.ttl)

        result = await get_notification_service().send_sms(phone, otp_text(code, self.ttl // 60))
        if not result.success:
            await self.store.delete(phone)
            logger.warning(f"OTP SMS to {mask_phone(phone)} failed: {result.error_message}")
            raise AppError("Could not send verification code", status_code=502)

        logger.info(f"📱 OTP sent to {mask_phone(phone)}")
        return self.ttl

    async def verify(self, phone: str, code: str) -> bool:
        """
        Check ``code`` for ``phone``.

        Raises:
            ValidationError: no code, expired code, or wrong code
            RateLimitError: attempts exhausted
        """
        phone = self.normalize_phone(phone)
        record = await self.store.get(phone)

        if record is None:
            raise ValidationError("No OTP found for this phone number. Please request a new one.")

        now = self.clock()
        if now >= record["expires_at"]:
            await self.store.delete(phone)
            raise ValidationError("OTP has expired. Please request a new one.")

        if record["attempts"] >= self.max_attempts:
            await self.store.delete(phone)
            raise RateLimitError("Too many failed attempts. Please request a new OTP.")

        if not hmac.compare_digest(record["code_hash"], self._hash(code)):
            record["attempts"] += 1
            remaining = self.max_attempts - record["attempts"]
            if remaining <= 0:
                await self.store.delete(phone)
                logger.warning(f"OTP for {mask_phone(phone)} burned after {record['attempts']} attempts")
                raise RateLimitError("Too many failed attempts. Please request a new OTP.")
            await self.store.put(phone, record, max(int(record["expires_at"] - now), 1))
            raise ValidationError(
                f"Invalid OTP. {remaining} attempts remaining.",
                details={"attempts_remaining": remaining},
            )

        await self.store.delete(phone)
        await self.store.mark_verified(phone, self.ttl)
        logger.info(f"✅ Phone {mask_phone(phone)} verified")
        return True

    async def is_phone_verified(self, phone: str) -> bool:
        return await self.store.is_verified(self.normalize_phone(phone))

    async def attempts_remaining(self, phone: str) -> int:
        record = await self.store.get(self.normalize_phone(phone))
        if record is None:
            return 0
        return max(self.max_attempts - record["attempts"], 0)

    async def clear(self, phone: str) -> None:
        await self.store.delete(self.normalize_phone(phone))


@lru_cache()
def get_otp_service() -> OTPService:
    settings = get_settings()
    if settings.is_development:
        logger.info("OTP Service: Using in-memory store (development mode)")
        return OTPService(MemoryOTPStore())
    logger.info("OTP Service: Using Redis store")
    return OTPService(RedisOTPStore(settings.redis_url))


def reset_otp_service() -> None:
    get_otp_service.cache_clear()
