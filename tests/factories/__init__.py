"""Test data factories using factory_boy.

These factories generate realistic test data for TrendScope models.
"""

from tests.factories.token import TokenEntryFactory, generate_mint_address, trending_record

__all__ = [
    "TokenEntryFactory",
    "generate_mint_address",
    "trending_record",
]
