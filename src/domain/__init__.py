"""Domain models and pure rate arithmetic for the exchange rates service.

This package holds the in-memory quote types, the cross-rate deriver and the
historical series reconstructor. Nothing here touches the network or the
database, so derivation can be tested without either.
"""

__all__ = [
    "cross_rates",
    "currencies",
    "historical",
    "quotes",
]
