"""State tree and transitions.

States are registered during setup into an append-only tree. Transitions
resolve the destination's data before atomically committing it.
"""
