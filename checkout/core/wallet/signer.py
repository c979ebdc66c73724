"""
External wallet signer bridge.

The wallet lives out of process (a mobile wallet adapter session, a browser
extension, a hardware signer). The bridge authorizes against it, hands over
exactly one unsigned transaction for sign-and-broadcast, and normalizes the
returned signature to base58.

Once `sign_and_submit` returns, the payment may already be on chain.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NoReturn, Optional, Sequence, Union

from ...config import Settings, settings as default_settings
from ...providers.base import Provider
from ...providers.jupiter import UnsignedTransaction
from ..errors import SignerError, SignerUnavailableError, UnreadableSignatureError, UserRejectedError
from .base58 import base58_encode, decode_base64, looks_base58

logger = logging.getLogger(__name__)

_REJECTION_PATTERNS = ("rejected", "declined", "denied", "cancelled", "canceled")


@dataclass(frozen=True)
class AppIdentity:
    """How the app presents itself in the wallet's authorization prompt."""

    name: str
    uri: str
    icon: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppIdentity":
        return cls(
            name=settings.wallet_identity_name,
            uri=settings.wallet_identity_uri,
            icon=settings.wallet_identity_icon,
        )


@dataclass
class Authorization:
    """Result of an authorize / reauthorize handshake."""

    auth_token: str
    accounts: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RawSignature:
    """Signature delivered as raw bytes."""

    data: bytes


@dataclass(frozen=True)
class EncodedSignature:
    """Signature delivered as text (base58, occasionally base64)."""

    text: str


SignerSignature = Union[RawSignature, EncodedSignature]


class SignerHandle(Provider):
    """
    Contract for an out-of-process wallet signer.

    Implementations raise UserRejectedError when the user declines; any
    other exception is reported as a SignerError by the bridge.
    """

    name = "wallet"

    @abstractmethod
    async def authorize(
        self,
        *,
        cluster: str,
        identity: AppIdentity,
        auth_token: Optional[str] = None,
    ) -> Authorization:
        """Authorize, or reauthorize when `auth_token` is given."""

    @abstractmethod
    async def sign_and_send_transactions(
        self,
        transactions: Sequence[bytes],
    ) -> Sequence[Union[str, bytes, bytearray, Sequence[int]]]:
        """Sign and broadcast; one signature per transaction, in order."""


def tag_signature(value: Any) -> SignerSignature:
    """Tag whatever the signer returned as raw bytes or encoded text."""
    if isinstance(value, (RawSignature, EncodedSignature)):
        return value
    if isinstance(value, str):
        return EncodedSignature(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return RawSignature(bytes(value))
    if isinstance(value, (list, tuple)) and all(isinstance(b, int) for b in value):
        try:
            return RawSignature(bytes(value))
        except ValueError as exc:
            raise SignerError("Signature byte values out of range") from exc
    raise SignerError(f"Unsupported signature type from wallet: {type(value).__name__}")


def normalize_signature(value: Union[SignerSignature, str, bytes]) -> str:
    """
    Canonical base58 text for a transaction signature.

    Raw bytes are base58 encoded; base58 text is returned unchanged; base64
    text is decoded and re-encoded.
    """
    tagged = tag_signature(value)

    if isinstance(tagged, RawSignature):
        if not tagged.data:
            raise SignerError("Wallet returned an empty signature")
        return base58_encode(tagged.data)

    text = tagged.text.strip()
    if not text:
        raise SignerError("Wallet returned an empty signature")
    if looks_base58(text):
        return text

    try:
        decoded = decode_base64(text)
    except ValueError as exc:
        raise SignerError("Unsupported signature encoding") from exc
    if not decoded:
        raise SignerError("Wallet returned an empty signature")
    return base58_encode(decoded)


def probe_signer(
    *factories: Callable[[], Optional[SignerHandle]],
) -> Optional[SignerHandle]:
    """
    Resolve the signer capability once at startup.

    Each factory returns a handle, returns None, or raises when its native
    capability is missing. The first handle wins.
    """
    for factory in factories:
        try:
            handle = factory()
        except (ImportError, LookupError, OSError, RuntimeError) as exc:
            logger.info("Signer candidate %s unavailable: %s", getattr(factory, "__name__", factory), exc)
            continue
        if handle is not None:
            logger.info("Using wallet signer %s", handle.name)
            return handle
    logger.warning("No wallet signer available")
    return None


class SignerBridge:
    """
    Hands unsigned transactions to the external signer.

    Authorization tokens are cached per cluster so repeat purchases do not
    prompt the user to connect again.
    """

    def __init__(
        self,
        handle: Optional[SignerHandle],
        *,
        settings: Optional[Settings] = None,
        identity: Optional[AppIdentity] = None,
    ) -> None:
        cfg = settings or default_settings
        self._handle = handle
        self._cluster = cfg.solana_cluster
        self._identity = identity or AppIdentity.from_settings(cfg)
        self._auth_tokens: Dict[str, str] = {}

    @property
    def has_handle(self) -> bool:
        return self._handle is not None

    async def ensure_available(self) -> SignerHandle:
        if self._handle is None:
            raise SignerUnavailableError()
        if not await self._handle.ready():
            raise SignerUnavailableError(f"Wallet signer {self._handle.name} is not ready")
        return self._handle

    def forget_authorization(self) -> None:
        self._auth_tokens.clear()

    async def sign_and_submit(self, tx: UnsignedTransaction) -> str:
        """
        Sign and broadcast one transaction; return its base58 signature.

        Raises:
            SignerUnavailableError: no signer registered or ready
            UserRejectedError: the user declined in the wallet
            UnreadableSignatureError: the wallet sent but gave back no
                usable signature
            SignerError: any other signer failure
        """
        handle = await self.ensure_available()

        try:
            payload = tx.to_bytes()
        except ValueError as exc:
            raise SignerError("Transaction payload is not valid base64") from exc

        await self._authorize(handle)

        try:
            signatures = await handle.sign_and_send_transactions([payload])
        except Exception as exc:
            self._raise_translated(exc)

        # The wallet call returned, so the transaction may already be on chain
        if not signatures:
            raise UnreadableSignatureError("Wallet returned no signature after sending")
        if len(signatures) > 1:
            logger.warning("Wallet returned %d signatures for one transaction", len(signatures))

        try:
            signature = normalize_signature(signatures[0])
        except SignerError as exc:
            logger.error("Unreadable signature from %s after send: %r", handle.name, signatures[0])
            raise UnreadableSignatureError(f"Unreadable signature after sending: {exc.message}") from exc
        logger.info("Transaction broadcast by %s: %s", handle.name, signature)
        return signature

    async def _authorize(self, handle: SignerHandle) -> Authorization:
        cached = self._auth_tokens.get(self._cluster)

        try:
            auth = await handle.authorize(
                cluster=self._cluster,
                identity=self._identity,
                auth_token=cached,
            )
        except Exception as exc:
            error = self._translate(exc)
            if cached is None or isinstance(error, UserRejectedError):
                self._raise_translated(exc)

            logger.warning("Reauthorization failed (%s); requesting a fresh authorization", exc)
            self._auth_tokens.pop(self._cluster, None)
            try:
                auth = await handle.authorize(
                    cluster=self._cluster,
                    identity=self._identity,
                    auth_token=None,
                )
            except Exception as retry_exc:
                self._raise_translated(retry_exc)

        if auth.auth_token:
            self._auth_tokens[self._cluster] = auth.auth_token
        return auth

    @staticmethod
    def _translate(exc: Exception) -> Exception:
        if isinstance(exc, (UserRejectedError, SignerError, SignerUnavailableError)):
            return exc
        message = str(exc)
        if any(p in message.lower() for p in _REJECTION_PATTERNS):
            return UserRejectedError(message)
        return SignerError(f"Wallet signer failed: {message or exc.__class__.__name__}")

    @classmethod
    def _raise_translated(cls, exc: Exception) -> NoReturn:
        error = cls._translate(exc)
        if error is exc:
            raise exc
        raise error from exc


__all__ = [
    "AppIdentity",
    "Authorization",
    "RawSignature",
    "EncodedSignature",
    "SignerSignature",
    "SignerHandle",
    "SignerBridge",
    "tag_signature",
    "normalize_signature",
    "probe_signer",
]
