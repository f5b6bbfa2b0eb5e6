import logging
from dataclasses import dataclass
from enum import Enum

from mirror_proxy.core.config import Settings
from mirror_proxy.core.security import (
    KeyImportError,
    VerificationKey,
    import_private_key,
    import_public_key,
    sign_message,
    verify_signature,
)

logger = logging.getLogger(__name__)


class AuthOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    REJECTED_IP = "rejected_ip"
    REJECTED_MISSING_SIGNATURE = "rejected_missing_signature"
    REJECTED_SIGNATURE = "rejected_signature"
    REJECTED_CONFIG = "rejected_config"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    AuthOutcome.AUTHENTICATED: 200,
    AuthOutcome.REJECTED_IP: 403,
    AuthOutcome.REJECTED_MISSING_SIGNATURE: 401,
    AuthOutcome.REJECTED_SIGNATURE: 403,
    AuthOutcome.REJECTED_CONFIG: 500,
}


@dataclass(frozen=True)
class AuthConfig:
    """Credential material and allow-list, fixed for the process lifetime."""

    permitted_ips: tuple[str, ...]
    public_key_string: str | None
    private_key_string: str | None = None
    dev_mode: bool = False
    client_ip_header: str = "CF-Connecting-IP"

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            permitted_ips=settings.permitted_ip_list,
            public_key_string=settings.public_key_string,
            private_key_string=settings.private_key_string,
            dev_mode=settings.environment == "dev",
            client_ip_header=settings.client_ip_header,
        )


def is_ip_allowed(source_ip: str | None, permitted_ips: tuple[str, ...], dev_mode: bool) -> bool:
    if dev_mode:
        return True

    if not permitted_ips:
        logger.warning("No permitted IPs configured; rejecting request")
        return False

    if source_ip is None:
        return False

    return source_ip in permitted_ips


class Authenticator:
    """Runs the IP gate and then the signature check over the raw body."""

    def __init__(self, config: AuthConfig) -> None:
        self.config = config
        self._verification_key: VerificationKey | None = None
        if config.public_key_string is None:
            logger.error("Public key is not configured")
            return
        try:
            self._verification_key = import_public_key(config.public_key_string)
        except KeyImportError:
            logger.exception("Failed to import public key")
        else:
            logger.info("Imported public key %r", self._verification_key)

    def authenticate(
        self,
        source_ip: str | None,
        signature_b64: str | None,
        body: bytes,
    ) -> AuthOutcome:
        logger.info("Authenticating request from %s", source_ip)

        if not is_ip_allowed(source_ip, self.config.permitted_ips, self.config.dev_mode):
            logger.warning("Rejected request from IP %s", source_ip)
            return AuthOutcome.REJECTED_IP

        return self._check_credentials(signature_b64, body)

    def _check_credentials(self, signature_b64: str | None, body: bytes) -> AuthOutcome:
        if self._verification_key is None:
            return AuthOutcome.REJECTED_CONFIG

        if self.config.dev_mode:
            self._log_generated_signature(body)

        if signature_b64 is None:
            return AuthOutcome.REJECTED_MISSING_SIGNATURE

        is_verified = verify_signature(signature_b64, body, self._verification_key)
        logger.info("Signature verified: %s", is_verified)
        if not is_verified:
            return AuthOutcome.REJECTED_SIGNATURE
        return AuthOutcome.AUTHENTICATED

    def _log_generated_signature(self, body: bytes) -> None:
        if self.config.private_key_string is None:
            logger.error("Private key not found in configuration")
            return
        try:
            signing_key = import_private_key(self.config.private_key_string)
        except KeyImportError:
            logger.exception("Failed to import private key")
            return
        logger.info("Request body: %s", body.decode("utf-8", errors="replace"))
        logger.info("Expected signature: %s", sign_message(signing_key, body))
