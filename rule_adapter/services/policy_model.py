"""In-memory rule index kept in sync with the store by the adapters."""
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from rule_adapter.services.codec import parse_line, section_of
from rule_adapter.services.filters import is_wildcard


class PolicyModel:
    """Rules grouped by section ("p", "g") and rule type ("p", "p2", "g", ...).

    Each rule is held once per type; adding a rule that is already present
    is refused, like the enforcement engines this index stands in for.
    """

    def __init__(self):
        self._sections: Dict[str, Dict[str, List[List[str]]]] = {}

    def _rules(self, sec: str, ptype: str) -> List[List[str]]:
        return self._sections.setdefault(sec, {}).setdefault(ptype, [])

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        rules = self._rules(sec, ptype)
        rule = list(rule)
        if rule in rules:
            return False
        rules.append(rule)
        return True

    def add_policies(self, sec: str, ptype: str, rules: Iterable[Sequence[str]]) -> bool:
        """Add every rule, or none of them if one is already present."""
        rules = [list(rule) for rule in rules]
        if any(self.has_policy(sec, ptype, rule) for rule in rules):
            return False
        for rule in rules:
            self.add_policy(sec, ptype, rule)
        return True

    def has_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        return list(rule) in self._sections.get(sec, {}).get(ptype, [])

    def get_policy(self, sec: str, ptype: str) -> List[List[str]]:
        return [list(rule) for rule in self._sections.get(sec, {}).get(ptype, [])]

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        rules = self._sections.get(sec, {}).get(ptype, [])
        rule = list(rule)
        if rule not in rules:
            return False
        rules.remove(rule)
        return True

    def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        rules = self._sections.get(sec, {}).get(ptype, [])
        kept = []
        removed = False
        for rule in rules:
            matched = all(
                is_wildcard(value) or (field_index + i < len(rule) and rule[field_index + i] == value)
                for i, value in enumerate(field_values)
            )
            if matched:
                removed = True
            else:
                kept.append(rule)
        rules[:] = kept
        return removed

    def update_policy(self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]) -> bool:
        rules = self._sections.get(sec, {}).get(ptype, [])
        old_rule = list(old_rule)
        if old_rule not in rules:
            return False
        rules[rules.index(old_rule)] = list(new_rule)
        return True

    def policy_types(self) -> Iterator[Tuple[str, str]]:
        """(section, rule type) pairs holding at least one rule."""
        for sec, types in self._sections.items():
            for ptype, rules in types.items():
                if rules:
                    yield sec, ptype

    def clear_policy(self):
        self._sections.clear()

    def load_policy_line(self, line: str) -> bool:
        ptype, values = parse_line(line)
        if not ptype:
            return False
        return self.add_policy(section_of(ptype), ptype, values)

    def to_lines(self) -> List[str]:
        return [
            ", ".join([ptype] + rule)
            for sec, ptype in self.policy_types()
            for rule in self._sections[sec][ptype]
        ]

    def __len__(self):
        return sum(len(rules) for types in self._sections.values() for rules in types.values())
