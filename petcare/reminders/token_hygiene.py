from typing import List, Sequence
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .dispatcher import (
    DeliveryOutcome,
    INVALID_REGISTRATION_TOKEN,
    MISMATCHED_CREDENTIAL,
    TOKEN_NOT_REGISTERED,
)
from .metrics import invalid_tokens_removed_total
from .repository import delete_token_for_user

logger = logging.getLogger(__name__)

PERMANENT_TOKEN_ERRORS = frozenset({
    INVALID_REGISTRATION_TOKEN,
    TOKEN_NOT_REGISTERED,
    MISMATCHED_CREDENTIAL,
})


def find_invalid_tokens(outcomes: Sequence[DeliveryOutcome], tokens: Sequence[str]) -> List[str]:
    """Tokens whose delivery failed for a reason that will never go away."""
    if len(outcomes) != len(tokens):
        logger.warning(
            f"[Reminders] Outcome/token count mismatch ({len(outcomes)} vs {len(tokens)}); "
            "checking the overlapping part only"
        )
    return [
        token
        for outcome, token in zip(outcomes, tokens)
        if not outcome.success and outcome.error_kind in PERMANENT_TOKEN_ERRORS
    ]


def remove_invalid_tokens(
    db: Session,
    user_id: str,
    outcomes: Sequence[DeliveryOutcome],
    tokens: Sequence[str],
) -> List[str]:
    """Delete permanently invalid tokens for ``user_id``. Returns the tokens removed.

    Each delete stands alone: a failure is logged and the rest still run.
    """
    removed: List[str] = []
    for token in find_invalid_tokens(outcomes, tokens):
        try:
            delete_token_for_user(db, user_id, token)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Reminders] Failed to delete token {token[:12]}… for user {user_id}: {e}")
            continue
        removed.append(token)

    if removed:
        invalid_tokens_removed_total.inc(len(removed))
        logger.info(f"[Reminders] Deleted {len(removed)} invalid token(s) for user {user_id}")
    return removed
