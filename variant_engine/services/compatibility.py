"""
Compatibility rule evaluation.

Rules are loaded once per generation request and evaluated in memory while
the generator walks the Cartesian product.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from variant_engine.core.logger import logger
from variant_engine.models.attribute import CompatibilityRule

# Prune reasons, reported in UnsatisfiableConstraint details
PARENT_RULE = "parent_rule"
CHILD_RULE = "child_rule"
REQUIRED_RULE = "required_rule"


def _rule_order(rule: CompatibilityRule):
    # ObjectId hex strings sort by creation time; rules without an id sort first
    return rule.id or ""


class CompatibilityRules:
    """Authoritative rule set with one rule per (parent type, parent value, child type)"""

    def __init__(self, rules: Iterable[CompatibilityRule], correlation_id: Optional[str] = None):
        authoritative: Dict[tuple, CompatibilityRule] = {}
        for rule in sorted(rules, key=_rule_order):
            previous = authoritative.get(rule.key)
            if previous is not None:
                logger.warning(
                    "Duplicate compatibility rule, latest wins",
                    correlation_id=correlation_id,
                    metadata={
                        "kept_rule_id": rule.id,
                        "ignored_rule_id": previous.id,
                        "parent_type_id": rule.parent_type_id,
                        "parent_value_id": rule.parent_value_id,
                        "child_type_id": rule.child_type_id,
                    },
                )
            authoritative[rule.key] = rule

        self.rules: List[CompatibilityRule] = list(authoritative.values())
        self._by_parent_type: Dict[str, List[CompatibilityRule]] = defaultdict(list)
        for rule in self.rules:
            self._by_parent_type[rule.parent_type_id].append(rule)

    def __len__(self):
        return len(self.rules)

    def rules_for(self, type_id: str, value_id: str) -> List[CompatibilityRule]:
        """Rules triggered by choosing ``value_id`` for ``type_id``."""
        return [r for r in self._by_parent_type.get(type_id, []) if r.triggered_by(type_id, value_id)]

    def check(
        self,
        path: Mapping[str, str],
        type_id: str,
        value_id: str,
        selected: Mapping[str, Sequence[str]]
    ) -> Optional[str]:
        """
        Decide whether ``(type_id, value_id)`` may extend ``path``.

        Args:
            path: attribute type id -> chosen value id, for types already placed
            type_id: type being placed
            value_id: candidate value
            selected: every selected type id -> its selected value ids

        Returns:
            None if the value is admissible, else the prune reason
        """
        # Rules from values already on the path that constrain this type
        for parent_type, parent_value in path.items():
            for rule in self.rules_for(parent_type, parent_value):
                if rule.child_type_id == type_id and not rule.admits(value_id):
                    return PARENT_RULE

        for rule in self.rules_for(type_id, value_id):
            if rule.child_type_id in path:
                if not rule.admits(path[rule.child_type_id]):
                    return CHILD_RULE
            elif rule.is_required:
                child_values = selected.get(rule.child_type_id)
                if not child_values or not rule.forced_values(list(child_values)):
                    return REQUIRED_RULE
        return None

    def admits_combination(self, assignment: Mapping[str, str]) -> bool:
        """Whole-combination check, independent of placement order."""
        for parent_type, parent_value in assignment.items():
            for rule in self.rules_for(parent_type, parent_value):
                child_value = assignment.get(rule.child_type_id)
                if child_value is None:
                    if rule.is_required:
                        return False
                elif not rule.admits(child_value):
                    return False
        return True
