"""
Push delivery through Firebase Cloud Messaging.

The scheduler talks to a ``PushGateway``; ``FcmPushGateway`` is the production
one and maps the SDK's per-token exceptions to plain error-kind strings.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol
import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, exceptions, messaging
from google.auth import exceptions as google_auth_exceptions

from .config import ReminderSettings

logger = logging.getLogger(__name__)

# FCM rejects multicast requests above this many tokens
MAX_MULTICAST_TOKENS = 500

INVALID_REGISTRATION_TOKEN = "invalid-registration-token"
TOKEN_NOT_REGISTERED = "registration-token-not-registered"
MISMATCHED_CREDENTIAL = "mismatched-credential"
# Token sat in a chunk whose request never reached FCM
SEND_FAILED = "send-failed"

# Most specific classes first: UnregisteredError is a NotFoundError, etc.
_ERROR_KINDS = (
    (messaging.UnregisteredError, TOKEN_NOT_REGISTERED),
    (messaging.SenderIdMismatchError, MISMATCHED_CREDENTIAL),
    (messaging.QuotaExceededError, "quota-exceeded"),
    (messaging.ThirdPartyAuthError, "third-party-auth-error"),
    (exceptions.InvalidArgumentError, INVALID_REGISTRATION_TOKEN),
    (exceptions.UnavailableError, "server-unavailable"),
    (exceptions.InternalError, "internal-error"),
)


class PushUnavailableError(RuntimeError):
    """The push service could not be reached or is not configured."""


@dataclass
class PushMessage:
    title: str
    body: str
    tokens: List[str]
    data: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryOutcome:
    success: bool
    error_kind: Optional[str] = None
    message_id: Optional[str] = None

    @classmethod
    def ok(cls, message_id: Optional[str] = None) -> "DeliveryOutcome":
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error_kind: str) -> "DeliveryOutcome":
        return cls(success=False, error_kind=error_kind)


class PushGateway(Protocol):
    def send_multicast(self, message: PushMessage) -> List[DeliveryOutcome]:
        """Send one message to every token; one outcome per token, same order."""
        ...


def classify_send_error(exc: Optional[BaseException]) -> str:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    if isinstance(exc, exceptions.FirebaseError) and exc.code:
        return str(exc.code).lower().replace("_", "-")
    return "unknown-error"


def build_multicast_message(message: PushMessage, tokens: List[str]) -> messaging.MulticastMessage:
    return messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=message.title, body=message.body),
        data=message.data,
        android=messaging.AndroidConfig(priority="high"),
        apns=messaging.APNSConfig(
            headers={
                "apns-priority": "10",
                "apns-push-type": "alert",
            },
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
        ),
    )


class FcmPushGateway:
    """Sends multicast pushes with the Firebase Admin SDK."""

    def __init__(self, settings: ReminderSettings):
        self.settings = settings
        self._app: Optional[firebase_admin.App] = None

    def _ensure_initialized(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app
        try:
            self._app = firebase_admin.get_app()
            return self._app
        except ValueError:
            pass

        proj = self.settings.FCM_PROJECT_ID
        options = {"projectId": proj} if proj else None
        creds_json = (
            self.settings.FCM_CREDENTIALS_JSON
            or os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
            or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        )
        logger.info(f"[FCM] Initializing Firebase | project_id={proj} credentials_set={bool(creds_json)}")

        try:
            if creds_json and creds_json.strip().startswith("{"):
                cred = credentials.Certificate(json.loads(creds_json))
                self._app = firebase_admin.initialize_app(cred, options=options)
            elif creds_json and os.path.exists(creds_json):
                cred = credentials.Certificate(creds_json)
                self._app = firebase_admin.initialize_app(cred, options=options)
            else:
                # Application default credentials
                self._app = firebase_admin.initialize_app(options=options)
        except (ValueError, OSError) as e:
            raise PushUnavailableError(f"Firebase initialization failed: {e!r}") from e

        logger.info(f"[FCM] Firebase app initialized: {self._app.name}")
        return self._app

    def send_multicast(self, message: PushMessage) -> List[DeliveryOutcome]:
        """One outcome per token. Raises PushUnavailableError only if no chunk got through."""
        app = self._ensure_initialized()
        outcomes: List[DeliveryOutcome] = []
        last_error: Optional[Exception] = None
        delivered = False
        for start in range(0, len(message.tokens), MAX_MULTICAST_TOKENS):
            chunk = message.tokens[start:start + MAX_MULTICAST_TOKENS]
            try:
                batch = messaging.send_each_for_multicast(build_multicast_message(message, chunk), app=app)
            except (exceptions.FirebaseError, google_auth_exceptions.GoogleAuthError, ValueError) as e:
                logger.error(f"[FCM] Multicast chunk of {len(chunk)} tokens failed: {e!r}")
                last_error = e
                outcomes.extend(DeliveryOutcome.failed(SEND_FAILED) for _ in chunk)
                continue

            delivered = True
            for response in batch.responses:
                if response.success:
                    outcomes.append(DeliveryOutcome.ok(response.message_id))
                else:
                    outcomes.append(DeliveryOutcome.failed(classify_send_error(response.exception)))
            logger.info(
                f"[FCM] Multicast sent | success={batch.success_count} failure={batch.failure_count}"
            )

        if last_error is not None and not delivered:
            raise PushUnavailableError(f"Multicast send failed: {last_error!r}") from last_error
        return outcomes
