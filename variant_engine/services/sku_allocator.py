"""
SKU allocation for generated variants
"""

import hashlib
import re
from typing import Iterable, Optional, Set

from variant_engine.core.config import config
from variant_engine.core.errors import SkuAllocationExhausted
from variant_engine.core.logger import logger
from variant_engine.models.attribute import AttributeValue

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def clean_segment(raw: Optional[str]) -> str:
    """Uppercase ``raw`` with every non-alphanumeric character stripped."""
    return _NON_ALNUM.sub("", raw or "").upper()


def fragment_for(value: AttributeValue) -> str:
    fragment = clean_segment(value.sku_fragment)
    if fragment:
        return fragment
    return clean_segment(value.value)[:3] or "X"


def suffix_for(candidate: str, attempt: int, length: int) -> str:
    digest = hashlib.sha256(f"{candidate}{attempt}".encode("utf-8")).hexdigest()
    return digest[:length].upper()


class SkuAllocator:
    """
    Builds ``BASE-FRAG1-FRAG2...`` SKUs and resolves collisions with a
    deterministic hex suffix.
    """

    def __init__(self, max_attempts: Optional[int] = None, suffix_length: Optional[int] = None):
        self.max_attempts = max_attempts or config.sku_max_attempts
        self.suffix_length = suffix_length or config.sku_suffix_length

    def candidate(self, base_sku: str, values: Iterable[AttributeValue]) -> str:
        segments = [clean_segment(base_sku) or "X"]
        segments.extend(fragment_for(v) for v in values)
        return "-".join(segments)

    def allocate(
        self,
        base_sku: str,
        values: Iterable[AttributeValue],
        existing_skus: Set[str],
        correlation_id: Optional[str] = None
    ) -> str:
        """
        Allocate a SKU not present in ``existing_skus`` and record it there.

        Raises:
            SkuAllocationExhausted: If every suffixed attempt collides
        """
        candidate = self.candidate(base_sku, values)
        if candidate not in existing_skus:
            existing_skus.add(candidate)
            return candidate

        for attempt in range(1, self.max_attempts + 1):
            suffixed = f"{candidate}-{suffix_for(candidate, attempt, self.suffix_length)}"
            if suffixed not in existing_skus:
                logger.debug(
                    f"SKU collision on {candidate}, allocated {suffixed}",
                    correlation_id=correlation_id,
                    metadata={"attempt": attempt},
                )
                existing_skus.add(suffixed)
                return suffixed

        raise SkuAllocationExhausted(
            f"Could not allocate a unique SKU for {candidate}",
            details={"candidate": candidate, "attempts": self.max_attempts},
        )
