"""Label selector matching for namespaceSelector fields."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

OP_IN = "In"
OP_NOT_IN = "NotIn"
OP_EXISTS = "Exists"
OP_DOES_NOT_EXIST = "DoesNotExist"

OPERATORS = (OP_IN, OP_NOT_IN, OP_EXISTS, OP_DOES_NOT_EXIST)


@dataclass
class Requirement:
    key: str
    operator: str
    values: List[str] = field(default_factory=list)


@dataclass
class LabelSelector:
    match_labels: Dict[str, str] = field(default_factory=dict)
    match_expressions: List[Requirement] = field(default_factory=list)

    @property
    def empty(self):
        return not self.match_labels and not self.match_expressions


def parse_selector(raw) -> Optional[LabelSelector]:
    """Decode a metav1.LabelSelector-shaped dict.

    Non-string label values and non-string expression values are dropped.
    Returns None when ``raw`` is not a mapping.
    """
    if not isinstance(raw, dict):
        return None

    selector = LabelSelector()

    match_labels = raw.get("matchLabels")
    if isinstance(match_labels, dict):
        selector.match_labels = {
            k: v for k, v in match_labels.items() if isinstance(v, str)
        }

    match_expressions = raw.get("matchExpressions")
    if isinstance(match_expressions, list):
        for expr in match_expressions:
            if not isinstance(expr, dict):
                continue
            key = expr.get("key")
            operator = expr.get("operator")
            values = expr.get("values")
            selector.match_expressions.append(
                Requirement(
                    key=key if isinstance(key, str) else "",
                    operator=operator if isinstance(operator, str) else "",
                    values=[v for v in values if isinstance(v, str)]
                    if isinstance(values, list)
                    else [],
                )
            )

    return selector


def _requirement_matches(req: Requirement, labels: Dict[str, str]) -> bool:
    present = req.key in labels
    # Exists/DoesNotExist only look at the key; any values are ignored
    if req.operator == OP_EXISTS:
        return present
    if req.operator == OP_DOES_NOT_EXIST:
        return not present
    if req.operator == OP_IN:
        return present and labels[req.key] in req.values
    if req.operator == OP_NOT_IN:
        return not present or labels[req.key] not in req.values
    return False


def _is_valid(req: Requirement) -> bool:
    if not req.key or req.operator not in OPERATORS:
        return False
    if req.operator in (OP_IN, OP_NOT_IN) and not req.values:
        return False
    return True


def matches(selector, labels) -> bool:
    """Return True if every constraint of ``selector`` holds for ``labels``.

    ``selector`` may be a LabelSelector or a raw dict. Malformed selectors
    never match.
    """
    if not isinstance(selector, LabelSelector):
        selector = parse_selector(selector)
    if selector is None:
        return False

    labels = labels or {}

    for req in selector.match_expressions:
        if not _is_valid(req):
            logger.debug(f"Ignoring selector with malformed requirement {req}")
            return False

    for key, value in selector.match_labels.items():
        if labels.get(key) != value:
            return False

    return all(_requirement_matches(req, labels) for req in selector.match_expressions)
