# inventory_hub/core/sku_resolution.py
"""SKU normalization and family classification.

Business rules:
    1. ``P`` suffix = personalized/engraved variant. Uses the SAME stock and
       BOM as its base SKU (VANTAGEP -> VANTAGE).
    2. ``-BALL`` suffix = bundle variant. DIFFERENT BOM, but grouped with the
       base product for sales display (VANTAGE-BALL -> VANTAGE).
    3. Numeric differences are different products entirely (RS vs RS2).

This module must stay free of imports from the BOM, stock or service
modules; everything here is a pure string function.
"""
from typing import Mapping, Optional

# Suffixes that denote the same BOM/stock as the base SKU, in priority order
VARIANT_SUFFIXES = ('P',)

# Suffixes that denote a different BOM but the same product family
BUNDLE_SUFFIXES = ('-BALL',)


def normalize_sku(sku: Optional[str]) -> Optional[str]:
    """Uppercase and trim; empty/None input is returned unchanged."""
    if not sku:
        return sku
    return sku.upper().strip()


def _matching_suffix(sku: str, suffixes) -> Optional[str]:
    for suffix in suffixes:
        if sku.endswith(suffix) and len(sku) > len(suffix):
            return suffix
    return None


def _strip_variant(sku: str) -> str:
    suffix = _matching_suffix(sku, VARIANT_SUFFIXES)
    if suffix is None:
        return sku
    base = sku[:-len(suffix)]
    # VANTAGEPP is not a variant of VANTAGEP; leaving it whole keeps a
    # second pass a no-op
    if _matching_suffix(base, VARIANT_SUFFIXES) is not None:
        return sku
    return base


def resolve_to_base_sku(sku: Optional[str]) -> Optional[str]:
    """Get the base SKU for BOM/inventory purposes.

    Examples:
        VANTAGEP -> VANTAGE (same stock)
        RSP -> RS
        VANTAGE-BALL -> VANTAGE-BALL (different stock, not stripped)
    """
    if not sku:
        return sku
    return _strip_variant(normalize_sku(sku))


def resolve_to_display_group_base(sku: Optional[str]) -> Optional[str]:
    """Get the display group base for sales analysis.

    Bundle suffixes are stripped first, then one variant suffix.

    Examples:
        VANTAGE-BALL -> VANTAGE
        VANTAGEP-BALL -> VANTAGE
        VANTAGEP -> VANTAGE
    """
    if not sku:
        return sku
    result = normalize_sku(sku)

    suffix = _matching_suffix(result, BUNDLE_SUFFIXES)
    if suffix is not None:
        result = result[:-len(suffix)]

    return _strip_variant(result)


def is_variant(sku: Optional[str]) -> bool:
    """True when the SKU carries a variant (personalization) suffix."""
    if not sku:
        return False
    return _matching_suffix(normalize_sku(sku), VARIANT_SUFFIXES) is not None


def has_bundle_suffix(sku: Optional[str]) -> bool:
    """True when the SKU carries a bundle suffix such as -BALL."""
    if not sku:
        return False
    return _matching_suffix(normalize_sku(sku), BUNDLE_SUFFIXES) is not None


def is_any_variant(sku: Optional[str]) -> bool:
    return is_variant(sku) or has_bundle_suffix(sku)


def are_sku_variants(sku1: Optional[str], sku2: Optional[str]) -> bool:
    """Check if two SKUs share a BOM through the variant suffix.

    Examples:
        ('VANTAGE', 'VANTAGEP') -> True
        ('RS', 'RS2') -> False
        ('VANTAGE', 'VANTAGE-BALL') -> False
    """
    if not sku1 or not sku2:
        return False
    same_base = resolve_to_base_sku(sku1) == resolve_to_base_sku(sku2)
    return same_base and (is_variant(sku1) or is_variant(sku2))


def are_in_same_display_group(sku1: Optional[str], sku2: Optional[str]) -> bool:
    if not sku1 or not sku2:
        return False
    return resolve_to_display_group_base(sku1) == resolve_to_display_group_base(sku2)


def resolve_legacy_sku(sku: Optional[str], mapping_table: Mapping[str, str]) -> Optional[str]:
    """Resolve an old SKU to its current SKU (single hop, no chaining).

    Args:
        sku: Raw SKU string
        mapping_table: old_sku -> current_sku lookup

    Returns:
        The mapped current SKU if present, else the input unchanged
    """
    if not sku or not mapping_table:
        return sku
    return mapping_table.get(sku, sku)
