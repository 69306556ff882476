"""
CONVERGENCE Core - Invariants
Règles appliquées par le noyau de résilience et de convergence.
Ces règles ne sont pas configurables: la configuration ne fait que les paramétrer.
"""

from enum import Enum
from typing import Dict, Final


class Severity(Enum):
    """Criticité d'un invariant."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'un invariant."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# RETRY (RETRY_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

RETRY_001 = Invariant("RETRY_001", "Délai = min(max_delay, initial * multiplier^tentative), saturé")
RETRY_002 = Invariant("RETRY_002", "Erreur non retryable propagée immédiatement")
RETRY_003 = Invariant("RETRY_003", "Classification par sous-chaîne insensible à la casse")
RETRY_004 = Invariant("RETRY_004", "Échec terminal annoté avec le nombre de tentatives")
RETRY_005 = Invariant("RETRY_005", "Politique validée: max_attempts >= 1, multiplier > 1")
RETRY_006 = Invariant("RETRY_006", "Timeout par tentative distinct du délai de retry")

# ══════════════════════════════════════════════════════════════════════════════
# SUPERVISION (SUP_001-008) - 8 règles
# ══════════════════════════════════════════════════════════════════════════════

SUP_001 = Invariant("SUP_001", "Probe réussie = connected, échecs remis à zéro, timer annulé")
SUP_002 = Invariant("SUP_002", "Planification de reconnexion idempotente par endpoint")
SUP_003 = Invariant("SUP_003", "Délai reconnexion = min(cap, base * 2^échecs consécutifs)")
SUP_004 = Invariant("SUP_004", "Jamais deux probes simultanées pour un même endpoint")
SUP_005 = Invariant("SUP_005", "Endpoint en erreur = health check léger, pas de reconnexion")
SUP_006 = Invariant("SUP_006", "Échec de probe jamais fatal, uniquement transition d'état")
SUP_007 = Invariant("SUP_007", "Timer vérifie sa génération avant d'agir")
SUP_008 = Invariant("SUP_008", "Suppression endpoint annule d'abord le timer")

# ══════════════════════════════════════════════════════════════════════════════
# SYNCHRONISATION (SYNC_001-008) - 8 règles
# ══════════════════════════════════════════════════════════════════════════════

SYNC_001 = Invariant("SYNC_001", "Chaîne append-only, previous_state_hash = hash de la tête")
SYNC_002 = Invariant("SYNC_002", "Lecture tête et ajout atomiques par instance cible")
SYNC_003 = Invariant("SYNC_003", "Hash différent d'une tête non résolue = conflit")
SYNC_004 = Invariant("SYNC_004", "Résolution d'un conflit fixée une seule fois")
SYNC_005 = Invariant("SYNC_005", "Stratégie de résolution par type de conflit, source_wins par défaut")
SYNC_006 = Invariant("SYNC_006", "Opération terminale dès qu'elle quitte syncing")
SYNC_007 = Invariant("SYNC_007", "Adjacence de la chaîne vérifiée à la lecture")
SYNC_008 = Invariant("SYNC_008", "Pas de synchronisation vers un endpoint connu hors ligne")

# ══════════════════════════════════════════════════════════════════════════════
# ÉVÉNEMENTS (EVT_001-002) - 2 règles
# ══════════════════════════════════════════════════════════════════════════════

EVT_001 = Invariant("EVT_001", "Notifications best-effort, jamais bloquantes")
EVT_002 = Invariant("EVT_002", "File bornée par abonné, surplus abandonné et compté")

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING (LOG_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

LOG_001 = Invariant("LOG_001", "Format JSON structuré obligatoire")
LOG_002 = Invariant("LOG_002", "Champs obligatoires: timestamp, level, correlation_id, component, message")
LOG_003 = Invariant("LOG_003", "Timestamp format ISO 8601 avec timezone UTC")
LOG_004 = Invariant("LOG_004", "Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL")
LOG_005 = Invariant("LOG_005", "Données sensibles et payloads JAMAIS en clair")

# ══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION (CFG_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

CFG_001 = Invariant("CFG_001", "backoff_multiplier strictement supérieur à 1")
CFG_002 = Invariant("CFG_002", "max_attempts supérieur ou égal à 1")
CFG_003 = Invariant("CFG_003", "initial_delay inférieur ou égal à max_delay")
CFG_004 = Invariant("CFG_004", "base_delay de reconnexion inférieur ou égal au cap")
CFG_005 = Invariant("CFG_005", "Timeouts et intervalles strictement positifs")
CFG_006 = Invariant("CFG_006", "Résolution de conflit par défaut connue")


ALL_INVARIANTS: Final[Dict[str, Invariant]] = {
    # Retry
    "RETRY_001": RETRY_001,
    "RETRY_002": RETRY_002,
    "RETRY_003": RETRY_003,
    "RETRY_004": RETRY_004,
    "RETRY_005": RETRY_005,
    "RETRY_006": RETRY_006,
    # Supervision
    "SUP_001": SUP_001,
    "SUP_002": SUP_002,
    "SUP_003": SUP_003,
    "SUP_004": SUP_004,
    "SUP_005": SUP_005,
    "SUP_006": SUP_006,
    "SUP_007": SUP_007,
    "SUP_008": SUP_008,
    # Synchronisation
    "SYNC_001": SYNC_001,
    "SYNC_002": SYNC_002,
    "SYNC_003": SYNC_003,
    "SYNC_004": SYNC_004,
    "SYNC_005": SYNC_005,
    "SYNC_006": SYNC_006,
    "SYNC_007": SYNC_007,
    "SYNC_008": SYNC_008,
    # Événements
    "EVT_001": EVT_001,
    "EVT_002": EVT_002,
    # Logging
    "LOG_001": LOG_001,
    "LOG_002": LOG_002,
    "LOG_003": LOG_003,
    "LOG_004": LOG_004,
    "LOG_005": LOG_005,
    # Configuration
    "CFG_001": CFG_001,
    "CFG_002": CFG_002,
    "CFG_003": CFG_003,
    "CFG_004": CFG_004,
    "CFG_005": CFG_005,
    "CFG_006": CFG_006,
}

EXPECTED_COUNTS: Final[Dict[str, int]] = {
    "RETRY": 6,
    "SUP": 8,
    "SYNC": 8,
    "EVT": 2,
    "LOG": 5,
    "CFG": 6,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)
