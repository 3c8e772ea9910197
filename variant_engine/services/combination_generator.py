"""
Combination Generator

Validates a generation request against the attribute catalog and enumerates
the valid Cartesian product of the selected values. The product is walked
depth-first in canonical type order and a partial path is abandoned as soon as
a compatibility rule rules it out, so incompatible branches are never expanded.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from variant_engine.core.config import config
from variant_engine.core.errors import (
    InvalidAttributeSelection,
    NoVariantAttributesSelected,
    UnsatisfiableConstraint,
)
from variant_engine.core.logger import logger
from variant_engine.models.attribute import AttributeType, AttributeValue
from variant_engine.models.variant import AttributeSelection, CandidateCombination
from variant_engine.repositories.attribute_repository import AttributeRepository
from variant_engine.repositories.compatibility_repository import CompatibilityRepository
from variant_engine.services.compatibility import (
    CHILD_RULE,
    PARENT_RULE,
    REQUIRED_RULE,
    CompatibilityRules,
)
from variant_engine.utils.identifiers import normalize_id, parse_object_id

Axis = Tuple[AttributeType, List[AttributeValue]]


def enumerate_combinations(
    axes: Sequence[Axis],
    rules: CompatibilityRules
) -> Tuple[List[CandidateCombination], Dict[str, int]]:
    """
    Depth-first product of ``axes`` with rule pruning.

    Returns:
        The surviving combinations in canonical order and the number of
        partial paths pruned per reason.
    """
    selected = {axis_type.id: [v.id for v in values] for axis_type, values in axes}
    pruned = {PARENT_RULE: 0, CHILD_RULE: 0, REQUIRED_RULE: 0}
    results: List[CandidateCombination] = []
    path: Dict[str, str] = {}
    chosen: List[AttributeValue] = []

    def walk(depth: int):
        if depth == len(axes):
            results.append(CandidateCombination(values=list(chosen)))
            return
        axis_type, values = axes[depth]
        for value in values:
            reason = rules.check(path, axis_type.id, value.id, selected)
            if reason:
                pruned[reason] += 1
                continue
            path[axis_type.id] = value.id
            chosen.append(value)
            walk(depth + 1)
            chosen.pop()
            del path[axis_type.id]

    walk(0)
    return results, pruned


class CombinationGenerator:
    """Turns attribute selections into valid candidate combinations"""

    def __init__(
        self,
        attributes: AttributeRepository,
        compatibility: CompatibilityRepository,
        max_axes: Optional[int] = None,
        max_values_per_axis: Optional[int] = None,
        max_combinations: Optional[int] = None
    ):
        self.attributes = attributes
        self.compatibility = compatibility
        self.max_axes = max_axes or config.max_variant_axes
        self.max_values_per_axis = max_values_per_axis or config.max_values_per_axis
        self.max_combinations = max_combinations or config.max_combinations

    def _merge_selections(self, selections: Sequence[AttributeSelection]) -> Dict[str, List[str]]:
        """type id -> distinct value ids; empty selections are dropped."""
        merged: Dict[str, List[str]] = {}
        for selection in selections:
            if not selection.attribute_value_ids:
                continue
            type_id = normalize_id(selection.attribute_type_id)
            values = merged.setdefault(type_id, [])
            for raw in selection.attribute_value_ids:
                value_id = normalize_id(raw)
                if value_id not in values:
                    values.append(value_id)
        return merged

    def _check_limits(self, merged: Dict[str, List[str]]):
        if len(merged) > self.max_axes:
            raise InvalidAttributeSelection(
                f"At most {self.max_axes} variant attributes can be combined",
                details={"selected_axes": len(merged), "max_variant_axes": self.max_axes},
            )
        for type_id, value_ids in merged.items():
            if len(value_ids) > self.max_values_per_axis:
                raise InvalidAttributeSelection(
                    f"At most {self.max_values_per_axis} values per attribute",
                    details={"attribute_type_id": type_id, "selected_values": len(value_ids)},
                )
        size = 1
        for value_ids in merged.values():
            size *= len(value_ids)
        if size > self.max_combinations:
            raise InvalidAttributeSelection(
                f"Selection would produce {size} combinations, limit is {self.max_combinations}",
                details={"combinations": size, "max_combinations": self.max_combinations},
            )

    async def _load_axes(
        self,
        merged: Dict[str, List[str]],
        correlation_id: Optional[str]
    ) -> List[Axis]:
        types = {t.id: t for t in await self.attributes.get_types(merged.keys(), correlation_id)}
        for type_id in merged:
            attribute_type = types.get(type_id)
            if attribute_type is None:
                raise InvalidAttributeSelection(
                    f"Attribute type {type_id} does not exist",
                    details={"attribute_type_id": type_id},
                )
            if not attribute_type.participates_in_variants:
                raise InvalidAttributeSelection(
                    f"Attribute type '{attribute_type.name}' does not generate variants",
                    details={"attribute_type_id": type_id},
                )

        active = {v.id: v for v in await self.attributes.get_active_values(merged.keys(), correlation_id)}
        axes: List[Axis] = []
        for type_id, value_ids in merged.items():
            values = []
            for value_id in value_ids:
                value = active.get(value_id)
                if value is None:
                    raise InvalidAttributeSelection(
                        f"Attribute value {value_id} does not exist or is not active",
                        details={"attribute_type_id": type_id, "attribute_value_id": value_id},
                    )
                if value.attribute_type_id != type_id:
                    raise InvalidAttributeSelection(
                        f"Attribute value {value_id} does not belong to type {type_id}",
                        details={
                            "attribute_type_id": type_id,
                            "attribute_value_id": value_id,
                            "actual_type_id": value.attribute_type_id,
                        },
                    )
                values.append(value)
            axes.append((types[type_id], sorted(values, key=lambda v: v.sort_key)))

        return sorted(axes, key=lambda axis: axis[0].sort_key)

    async def generate(
        self,
        product_id: str,
        selections: Sequence[AttributeSelection],
        correlation_id: Optional[str] = None
    ) -> List[CandidateCombination]:
        """
        Enumerate valid combinations for ``selections``.

        Raises:
            InvalidAttributeSelection: Unknown, non-variant or inactive attributes, or limits exceeded
            NoVariantAttributesSelected: No selection carries any value
            UnsatisfiableConstraint: Rules leave no valid combination
        """
        parse_object_id(product_id, "product_id")
        merged = self._merge_selections(selections)
        if not merged:
            raise NoVariantAttributesSelected()

        self._check_limits(merged)
        axes = await self._load_axes(merged, correlation_id)
        rules = CompatibilityRules(
            await self.compatibility.rules_for_types(merged.keys(), correlation_id),
            correlation_id=correlation_id,
        )

        combinations, pruned = enumerate_combinations(axes, rules)
        product_size = 1
        for _, values in axes:
            product_size *= len(values)

        logger.info(
            f"Enumerated {len(combinations)} of {product_size} combinations",
            correlation_id=correlation_id,
            metadata={
                "product_id": product_id,
                "axes": [axis_type.name for axis_type, _ in axes],
                "rules": len(rules),
                "pruned": pruned,
            },
        )

        if not combinations:
            raise UnsatisfiableConstraint(
                "Compatibility rules leave no valid combination",
                details={"product_size": product_size, "pruned": pruned},
            )
        return combinations
