from __future__ import annotations


class ChatServiceError(Exception):
    """Basisklasse für Fehler der Persistenzschicht."""


class MessageValidationError(ChatServiceError, ValueError):
    """Sender außerhalb der Rollenmenge oder leerer Text."""
