"""
Hiérarchie d'erreurs métier.

Chaque erreur porte un message lisible, un `kind` stable (exploitable par le client),
le code HTTP équivalent et un indicateur `is_retryable`. Les services lèvent ces
erreurs, le handler enregistré dans main.py les convertit en réponse JSON.

Seule InfrastructureError est rejouable : les autres ne changeront pas de résultat
sans modification préalable de l'état.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base de toutes les erreurs métier."""

    kind = "ERROR"
    category = "internal"
    status_code = 500
    is_retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"detail": self.message, "kind": self.kind}
        if self.details:
            payload["details"] = self.details
        return payload


# --- Validation (400) ---

class InvalidInput(AppError):
    kind = "INVALID_INPUT"
    category = "validation"
    status_code = 400


class InvalidProof(InvalidInput):
    """La preuve soumise ne correspond pas à celle attendue par l'étape."""
    kind = "INVALID_PROOF"


# --- Authentification (401 / 403) ---

class Unauthorized(AppError):
    kind = "UNAUTHORIZED"
    category = "auth"
    status_code = 401


class Forbidden(AppError):
    kind = "FORBIDDEN"
    category = "auth"
    status_code = 403


# --- Ressource absente (404) ---

class NotFound(AppError):
    kind = "NOT_FOUND"
    category = "not_found"
    status_code = 404


# --- Conflits (409) ---

class Conflict(AppError):
    kind = "CONFLICT"
    category = "conflict"
    status_code = 409


class AlreadyJoined(Conflict):
    kind = "ALREADY_JOINED"


class ChallengeInProgress(Conflict):
    """Suppression ou restructuration refusée : des participants sont inscrits."""
    kind = "CHALLENGE_IN_PROGRESS"


# --- Règles métier (400) ---

class StateError(AppError):
    kind = "STATE_ERROR"
    category = "state"
    status_code = 400


class StageLocked(StateError):
    kind = "STAGE_LOCKED"


class ChallengeNotActive(StateError):
    kind = "CHALLENGE_NOT_ACTIVE"


class ChallengeWindowClosed(StateError):
    kind = "CHALLENGE_WINDOW_CLOSED"


class LevelTooLow(StateError):
    kind = "LEVEL_TOO_LOW"


class ChallengeFull(StateError):
    kind = "CHALLENGE_FULL"


class NoStages(StateError):
    kind = "NO_STAGES"


# --- Infrastructure (503) ---

class InfrastructureError(AppError):
    """Base de données injoignable ou indisponible, le client peut réessayer."""
    kind = "INFRASTRUCTURE"
    category = "infrastructure"
    status_code = 503
    is_retryable = True
