"""
Resilience - Error Classifier

Classification transitoire / permanente des erreurs.

Invariant:
    RETRY_003: Sous-chaîne insensible à la casse sur message, code, status
"""

from typing import List

from .interfaces import ErrorKind, IErrorClassifier, RetryPolicy


class ErrorClassifier(IErrorClassifier):
    """
    Classe une erreur selon les patterns de la politique.

    Les champs inspectés sont le message, le nom de classe, l'attribut
    `code` (ou `errno`) et le status HTTP (`status_code` ou `status`).

    Example:
        error = OSError("connect failed")
        error.code = "ETIMEDOUT"
        classifier.classify(error, RetryPolicy(retryable_patterns={"timeout"}))
        # ErrorKind.TRANSIENT
    """

    CODE_ATTRIBUTES: List[str] = ["code", "errno"]
    STATUS_ATTRIBUTES: List[str] = ["status_code", "status"]

    def classify(self, error: BaseException, policy: RetryPolicy) -> ErrorKind:
        """
        RETRY_003: Classe l'erreur.

        Args:
            error: Exception à classer
            policy: Politique portant les patterns retryables

        Returns:
            TRANSIENT si au moins un pattern est contenu dans un des champs
        """
        fields = self.extract_fields(error)

        for pattern in policy.retryable_patterns:
            pattern_lower = pattern.lower()
            if not pattern_lower:
                continue
            if any(pattern_lower in value for value in fields):
                return ErrorKind.TRANSIENT

        return ErrorKind.PERMANENT

    def is_retryable(self, error: BaseException, policy: RetryPolicy) -> bool:
        """Raccourci booléen de classify()."""
        return self.classify(error, policy) == ErrorKind.TRANSIENT

    def extract_fields(self, error: BaseException) -> List[str]:
        """
        Extrait les champs textuels comparés aux patterns (en minuscules).

        Args:
            error: Exception à inspecter

        Returns:
            Liste de chaînes non vides
        """
        fields = [str(error), type(error).__name__]

        for attr in self.CODE_ATTRIBUTES + self.STATUS_ATTRIBUTES:
            value = getattr(error, attr, None)
            if value is not None and not callable(value):
                fields.append(str(value))

        return [f.lower() for f in fields if f]
