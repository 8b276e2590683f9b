"""Error kinds surfaced by the settlement engine.

User-facing errors carry a short ``code`` and an HTTP status so the API
layer can render them uniformly. Internal errors are logged and retried.
"""

from __future__ import annotations


class SatoshiDailyError(Exception):
    """Base class for all engine errors."""

    code = "error"
    status_code = 500
    message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


# ---------------------------------------------------------------------------
# User-facing
# ---------------------------------------------------------------------------


class UserFacingError(SatoshiDailyError):
    """Returned synchronously to the player."""

    status_code = 409


class CaptchaFailed(UserFacingError):
    code = "captcha_failed"
    status_code = 403
    message = "Captcha verification failed"


class InvalidPrice(UserFacingError):
    code = "invalid_price"
    status_code = 422
    message = "Prediction must be a whole number of dollars between 1 and 999,999,999"


class WrongDate(UserFacingError):
    code = "wrong_date"
    message = "Predictions are only accepted for today's game"


class GameClosed(UserFacingError):
    code = "game_closed"
    message = "Predictions for this game are locked"


class NoGuessesLeft(UserFacingError):
    code = "no_guesses_left"
    message = "No guesses left for today"


class AlreadyUnlocked(UserFacingError):
    code = "already_unlocked"
    message = "Bonus guess already unlocked for today"


class InvalidLoginToken(UserFacingError):
    code = "invalid_login_token"
    status_code = 401
    message = "Sign-in link is invalid, expired or already used"


class PayoutAlreadyRecorded(UserFacingError):
    code = "payout_already_recorded"
    message = "Payout already recorded for this winner"


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------


class PriceOracleUnavailable(SatoshiDailyError):
    code = "price_oracle_unavailable"
    status_code = 503
    message = "All price sources failed"


class PersistenceConflict(SatoshiDailyError):
    code = "persistence_conflict"
    status_code = 409
    message = "Concurrent write lost the race"
