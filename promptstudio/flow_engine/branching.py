"""
Branching Logic - Evaluate conditional node conditions

Supports:
- Simple conditions (equals, not equals, contains, etc)
- Complex conditions (AND, OR)
- Operand form used by the flow builder: {leftOperand, operator, rightOperand}
- String expressions: "{{score}} > 5", "{{query}} contains refund", "{{flag}}"
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from promptstudio.flow_engine.variable_resolver import VARIABLE_PATTERN, resolve

logger = logging.getLogger(__name__)


class ConditionOperator(str, Enum):
    """Condition operators for branching"""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_OR_EQUAL = "GREATER_OR_EQUAL"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"
    IS_EMPTY = "IS_EMPTY"
    IS_NOT_EMPTY = "IS_NOT_EMPTY"
    EXISTS = "EXISTS"
    NOT_EXISTS = "NOT_EXISTS"


class LogicalOperator(str, Enum):
    """Logical operators for combining conditions"""
    AND = "AND"
    OR = "OR"


# Symbolic / short spellings accepted from the flow builder
OPERATOR_ALIASES = {
    '==': ConditionOperator.EQUALS,
    '=': ConditionOperator.EQUALS,
    'EQ': ConditionOperator.EQUALS,
    '!=': ConditionOperator.NOT_EQUALS,
    'NE': ConditionOperator.NOT_EQUALS,
    '>': ConditionOperator.GREATER_THAN,
    'GT': ConditionOperator.GREATER_THAN,
    '<': ConditionOperator.LESS_THAN,
    'LT': ConditionOperator.LESS_THAN,
    '>=': ConditionOperator.GREATER_OR_EQUAL,
    'GTE': ConditionOperator.GREATER_OR_EQUAL,
    '<=': ConditionOperator.LESS_OR_EQUAL,
    'LTE': ConditionOperator.LESS_OR_EQUAL,
}

EXPRESSION_PATTERN = re.compile(
    r'^(?P<left>.*?)\s*(?P<op>==|!=|>=|<=|>|<|\bnot contains\b|\bcontains\b|\bstarts with\b|\bends with\b)\s*(?P<right>.*)$',
    re.IGNORECASE | re.DOTALL,
)

TRUE_STRINGS = {'true', 'yes', '1', 'on'}
FALSE_STRINGS = {'false', 'no', '0', 'off', 'none', 'null', ''}


def parse_operator(operator: Any) -> Optional[ConditionOperator]:
    """Normalise an operator spelling; None when unknown"""
    if isinstance(operator, ConditionOperator):
        return operator
    if not operator:
        return None
    key = str(operator).strip().upper().replace(' ', '_').replace('-', '_')
    if key in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[key]
    try:
        return ConditionOperator(key)
    except ValueError:
        return None


def truthy(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        return True
    return bool(value)


class ConditionEvaluator:
    """
    Evaluates a conditional node's condition against the variable environment.

    Condition examples:
        "{{customer_query}} contains refund"
        {"leftOperand": "customer_query", "operator": "contains", "rightOperand": "refund"}
        {
            "operator": "AND",
            "conditions": [
                {"field": "{{score}}", "operator": "GREATER_THAN", "value": 5},
                {"field": "{{status}}", "operator": "EQUALS", "value": "active"}
            ]
        }
    """

    def __init__(self, environment: Mapping[str, Any]):
        """
        Args:
            environment: Variable environment of the current run
        """
        self.environment = environment

    def evaluate(self, condition: Any) -> bool:
        """
        Evaluate a condition to a boolean.

        Args:
            condition: String, bool or dict condition definition

        Returns:
            True if condition matches
        """
        if isinstance(condition, bool):
            return condition
        if isinstance(condition, str):
            return self._evaluate_expression(condition)
        if isinstance(condition, dict):
            return self._evaluate_condition(condition)
        if condition is None:
            logger.warning("Conditional node has no condition, taking false branch")
            return False
        return truthy(condition)

    def _evaluate_condition(self, condition: Dict[str, Any]) -> bool:
        operator = condition.get('operator')

        # Complex condition (AND/OR)
        if str(operator).upper() in (LogicalOperator.AND.value, LogicalOperator.OR.value):
            sub_conditions = condition.get('conditions', [])
            results = [self.evaluate(c) for c in sub_conditions]

            if str(operator).upper() == LogicalOperator.AND.value:
                return all(results)
            else:  # OR
                return any(results)

        if 'leftOperand' in condition or 'left_operand' in condition:
            left = condition.get('leftOperand', condition.get('left_operand'))
            right = condition.get('rightOperand', condition.get('right_operand'))
            actual = self._resolve_operand(left, bare_name=True)
            expected = self._resolve_operand(right)
        else:
            actual = self._resolve_operand(condition.get('field'), bare_name=True)
            expected = self._resolve_operand(condition.get('value'))

        parsed = parse_operator(operator)
        if parsed is None:
            logger.warning(f"Unknown operator: {operator}")
            return False
        return self._check_condition(actual, parsed, expected)

    def _evaluate_expression(self, expression: str) -> bool:
        match = EXPRESSION_PATTERN.match(expression.strip())
        if not match:
            return truthy(resolve(expression, self.environment))

        actual = self._resolve_operand(match.group('left').strip())
        expected = self._resolve_operand(_strip_quotes(match.group('right').strip()))
        operator = parse_operator(match.group('op'))
        return self._check_condition(actual, operator, expected)

    def _resolve_operand(self, value: Any, bare_name: bool = False) -> Any:
        """
        Resolve an operand. A string that is exactly one placeholder keeps the
        variable's type; bare names are looked up when bare_name is set.
        """
        if not isinstance(value, str):
            return value

        match = VARIABLE_PATTERN.fullmatch(value.strip())
        if match:
            return self.environment.get(match.group(1).strip())
        if VARIABLE_PATTERN.search(value):
            return resolve(value, self.environment)
        if bare_name and value in self.environment:
            return self.environment[value]
        return value

    def _check_condition(
        self,
        actual: Any,
        operator: ConditionOperator,
        expected: Any
    ) -> bool:
        """
        Check a simple condition.

        Args:
            actual: Actual value from flow data
            operator: Condition operator
            expected: Expected value

        Returns:
            True if condition matches
        """
        try:
            if operator == ConditionOperator.EQUALS:
                return _loose_equals(actual, expected)

            elif operator == ConditionOperator.NOT_EQUALS:
                return not _loose_equals(actual, expected)

            elif operator == ConditionOperator.CONTAINS:
                return str(expected) in str(actual)

            elif operator == ConditionOperator.NOT_CONTAINS:
                return str(expected) not in str(actual)

            elif operator == ConditionOperator.STARTS_WITH:
                return str(actual).startswith(str(expected))

            elif operator == ConditionOperator.ENDS_WITH:
                return str(actual).endswith(str(expected))

            elif operator == ConditionOperator.GREATER_THAN:
                return float(actual) > float(expected)

            elif operator == ConditionOperator.LESS_THAN:
                return float(actual) < float(expected)

            elif operator == ConditionOperator.GREATER_OR_EQUAL:
                return float(actual) >= float(expected)

            elif operator == ConditionOperator.LESS_OR_EQUAL:
                return float(actual) <= float(expected)

            elif operator == ConditionOperator.IS_EMPTY:
                return actual is None or actual == "" or actual == [] or actual == {}

            elif operator == ConditionOperator.IS_NOT_EMPTY:
                return not (actual is None or actual == "" or actual == [] or actual == {})

            elif operator == ConditionOperator.EXISTS:
                return actual is not None

            elif operator == ConditionOperator.NOT_EXISTS:
                return actual is None

            else:
                logger.warning(f"Unknown operator: {operator}")
                return False

        except (ValueError, TypeError) as e:
            logger.warning(f"Error evaluating condition: {e}")
            return False


def _loose_equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    if isinstance(actual, str) or isinstance(expected, str):
        return str(actual).strip() == str(expected).strip()
    return False


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def evaluate_condition(condition: Any, environment: Mapping[str, Any]) -> bool:
    """Evaluate condition against environment"""
    return ConditionEvaluator(environment).evaluate(condition)
