"""
Invariants

Registre des règles nommées appliquées par le noyau.
"""
