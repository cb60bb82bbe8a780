"""User-facing texts for AppError and prompt building.

German is the product locale; English is kept for development builds.
"""

from __future__ import annotations

from typing import Mapping, TypeVar

from tradodesk.core.errors import ErrorCode

DEFAULT_LOCALE = "de"

V = TypeVar("V")

# code -> locale -> (message, suggested_action)
_ERROR_TEXTS: dict[ErrorCode, dict[str, tuple[str, str]]] = {
    ErrorCode.UNKNOWN: {
        "de": (
            "Ein unbekannter Fehler ist aufgetreten.",
            "Bitte versuche es erneut oder starte die App neu.",
        ),
        "en": (
            "An unknown error occurred.",
            "Please try again or restart the app.",
        ),
    },
    ErrorCode.QUOTA_EXCEEDED: {
        "de": (
            "Dein KI-Guthaben oder Limit ist erschöpft.",
            "Überprüfe dein Billing in der Google Cloud Console oder warte bis zum Reset.",
        ),
        "en": (
            "Your AI credit or quota is exhausted.",
            "Check billing in the Google Cloud Console or wait for the quota reset.",
        ),
    },
    ErrorCode.RATE_LIMITED: {
        "de": (
            "Zu viele Anfragen in kurzer Zeit (Rate Limit).",
            "Warte einen Moment, bevor du eine neue Anfrage stellst.",
        ),
        "en": (
            "Too many requests in a short time (rate limit).",
            "Wait a moment before sending a new request.",
        ),
    },
    ErrorCode.AUTH_FAILED: {
        "de": (
            "Der API-Schlüssel wurde abgelehnt.",
            "Bitte prüfe den API-Key in den Einstellungen.",
        ),
        "en": (
            "The API key was rejected.",
            "Please check the API key in the settings.",
        ),
    },
    ErrorCode.SERVICE_UNAVAILABLE: {
        "de": (
            "Der KI-Dienst ist momentan überlastet oder nicht erreichbar.",
            "Versuche es in ein paar Sekunden erneut.",
        ),
        "en": (
            "The AI service is currently overloaded or unavailable.",
            "Try again in a few seconds.",
        ),
    },
    ErrorCode.SERVICE_UNREACHABLE: {
        "de": (
            "Netzwerkfehler beim Verbinden zum KI-Dienst.",
            "Prüfe deine Internetverbindung.",
        ),
        "en": (
            "Network error while connecting to the AI service.",
            "Check your internet connection.",
        ),
    },
    ErrorCode.VALIDATION_FAILED: {
        "de": (
            "Die Antwort des KI-Dienstes hatte ein unerwartetes Format.",
            "Bitte versuche es erneut. Bleibt der Fehler, melde ihn mit der Korrelations-ID.",
        ),
        "en": (
            "The AI service returned an unexpected response format.",
            "Please try again. If it persists, report it with the correlation id.",
        ),
    },
    ErrorCode.AUTOMATION_TIMEOUT: {
        "de": (
            "Die Automatisierung hat zu lange gedauert.",
            "Prüfe die Broker-Verbindung und versuche es erneut.",
        ),
        "en": (
            "The automation task timed out.",
            "Check the broker connection and try again.",
        ),
    },
    ErrorCode.AUTOMATION_BLOCKED: {
        "de": (
            "Aktion im Demo-Modus blockiert.",
            "Deaktiviere den Demo-Modus in den Einstellungen, um echte Orders auszuführen.",
        ),
        "en": (
            "Action blocked in demo mode.",
            "Disable demo mode in the settings to place real orders.",
        ),
    },
    ErrorCode.CONFIG_LOAD_FAILED: {
        "de": (
            "Die Konfiguration konnte nicht geladen werden.",
            "Prüfe die Konfigurationsdatei und starte die App neu.",
        ),
        "en": (
            "The configuration could not be loaded.",
            "Check the config file and restart the app.",
        ),
    },
    ErrorCode.CANCELLED: {
        "de": (
            "Die Anfrage wurde abgebrochen.",
            "Sende die Anfrage erneut, wenn du eine Antwort möchtest.",
        ),
        "en": (
            "The request was cancelled.",
            "Send the request again if you still want an answer.",
        ),
    },
}

_RETRIES_EXHAUSTED: dict[str, dict[str, str]] = {
    "generate": {
        "de": "Verbindung zum KI-Dienst fehlgeschlagen (trotz mehrerer Versuche).",
        "en": "Connecting to the AI service failed (after several attempts).",
    },
    "stream": {
        "de": "Verbindung zum KI-Dienst konnte nicht hergestellt werden (Max Retries).",
        "en": "Could not establish a connection to the AI service (max retries).",
    },
}

_CHART_PREFIX: dict[str, str] = {
    "de": "Analysiere diesen Chart. ",
    "en": "Analyze this chart. ",
}


def _pick(table: Mapping[str, V], locale: str) -> V:
    return table.get(locale) or table[DEFAULT_LOCALE]


def error_text(code: ErrorCode, locale: str = DEFAULT_LOCALE) -> tuple[str, str]:
    """Return (message, suggested_action) for `code`."""

    return _pick(_ERROR_TEXTS.get(code) or _ERROR_TEXTS[ErrorCode.UNKNOWN], locale)


def retries_exhausted_text(operation: str, locale: str = DEFAULT_LOCALE) -> str:
    return _pick(_RETRIES_EXHAUSTED[operation], locale)


def chart_prefix(locale: str = DEFAULT_LOCALE) -> str:
    return _pick(_CHART_PREFIX, locale)
