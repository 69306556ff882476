"""
Test que toutes les règles sont définies correctement.
"""

import re
import pytest
from convergence.invariants.rules import (
    ALL_INVARIANTS,
    EXPECTED_COUNTS,
    TOTAL_INVARIANTS,
    Invariant,
    Severity,
)


class TestInvariantsExist:
    """Vérifie que toutes les règles attendues sont définies."""

    def test_total_count(self):
        """Le nombre total d'invariants doit être 35."""
        assert TOTAL_INVARIANTS == 35, f"Expected 35, got {TOTAL_INVARIANTS}"

    def test_counts_match_expected(self):
        """Le compte par section doit correspondre."""
        counts = {}
        for id in ALL_INVARIANTS.keys():
            prefix = id.split("_")[0]
            counts[prefix] = counts.get(prefix, 0) + 1

        assert counts == EXPECTED_COUNTS

    def test_all_invariants_have_id(self):
        """Chaque invariant doit avoir un ID correspondant à sa clé."""
        for id, invariant in ALL_INVARIANTS.items():
            assert invariant.id == id, f"ID mismatch: key={id}, invariant.id={invariant.id}"

    def test_all_invariants_have_rule(self):
        """Chaque invariant doit avoir une règle non vide."""
        for id, invariant in ALL_INVARIANTS.items():
            assert invariant.rule, f"Invariant {id} has no rule"
            assert len(invariant.rule) >= 10, f"Invariant {id} rule too short: {invariant.rule}"

    def test_id_format(self):
        """Les IDs doivent respecter le format PREFIX_NNN."""
        pattern = r"^[A-Z]+_\d{3}$"
        for id in ALL_INVARIANTS.keys():
            assert re.match(pattern, id), f"Invalid ID format: {id}"

    def test_all_invariants_are_invariant_type(self):
        """Tous les éléments doivent être de type Invariant."""
        for id, invariant in ALL_INVARIANTS.items():
            assert isinstance(invariant, Invariant), f"{id} is not an Invariant"

    def test_severity_is_valid(self):
        """Toutes les sévérités doivent être valides."""
        for id, invariant in ALL_INVARIANTS.items():
            assert isinstance(invariant.severity, Severity), f"{id} has invalid severity"


class TestInvariantSections:
    """Vérifie que chaque section est numérotée sans trou."""

    @pytest.mark.parametrize("prefix", ["RETRY", "SUP", "SYNC", "EVT", "LOG", "CFG"])
    def test_section_is_contiguous(self, prefix: str):
        """Les règles d'une section sont numérotées de 001 à N."""
        numbers = sorted(int(id.split("_")[1]) for id in ALL_INVARIANTS if id.startswith(prefix + "_"))
        assert numbers == list(range(1, EXPECTED_COUNTS[prefix] + 1))


class TestCriticalInvariants:
    """Vérifie que les invariants critiques sont présents."""

    @pytest.mark.parametrize(
        "rule_id",
        [
            "RETRY_002",  # Erreur permanente jamais retentée
            "SUP_004",  # Une seule probe en vol
            "SUP_007",  # Timer périmé sans effet
            "SYNC_001",  # Chaîne append-only
            "SYNC_002",  # Sérialisation par cible
            "SYNC_004",  # Résolution fixée une fois
            "LOG_005",  # Payloads jamais en clair
        ],
    )
    def test_critical_invariant_is_blocking(self, rule_id: str):
        """Les invariants critiques doivent exister et être BLOCKING."""
        assert rule_id in ALL_INVARIANTS, f"Critical invariant {rule_id} missing"
        assert ALL_INVARIANTS[rule_id].severity == Severity.BLOCKING, f"{rule_id} should be BLOCKING"
