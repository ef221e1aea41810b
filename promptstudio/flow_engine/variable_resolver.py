"""
Variable Resolver - Resolves {{name}} placeholders in prompt templates

Used standalone (template execution, batch runs) and inside flow nodes.
Supports:
- {{name}} - Value from the variable environment
- {{node_<id>_output}} - Output of a completed flow node
- Default values when a variable is missing from the environment

Names are matched with the same pattern everywhere, so extraction and
substitution always agree. Nested braces are not supported.
"""

import json
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

logger = logging.getLogger(__name__)

# Pattern to match {{name}}
VARIABLE_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')


def node_output_key(node_id: str) -> str:
    """Environment key holding a completed node's output"""
    return f"node_{node_id}_output"


def extract_variable_names(text: Optional[str]) -> List[str]:
    """
    Extract placeholder names from text.

    Names are trimmed, empty names are ignored and duplicates collapse to
    their first occurrence.

    Examples:
        "Hi {{ name }}, {{name}} {{topic}}" -> ["name", "topic"]
        "{{a{b}}" -> []
    """
    if not text:
        return []

    names: List[str] = []
    seen = set()
    for match in VARIABLE_PATTERN.finditer(text):
        name = match.group(1).strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def stringify(value: Any) -> str:
    """Render an environment value for substitution into text"""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def _lookup(name: str, environment: Mapping[str, Any], defaults: Optional[Mapping[str, Any]]) -> str:
    if name in environment:
        return stringify(environment[name])
    if defaults and name in defaults:
        return stringify(defaults[name])
    return ''


def resolve(
    template: Optional[str],
    environment: Mapping[str, Any],
    defaults: Optional[Mapping[str, Any]] = None
) -> str:
    """
    Substitute every {{name}} in template.

    Each placeholder takes environment[name], else defaults[name], else ''.

    Args:
        template: Text containing placeholders
        environment: Variable environment
        defaults: Optional default values by name

    Returns:
        Resolved text
    """
    if not template:
        return ''

    def replace_var(match):
        name = match.group(1).strip()
        if not name:
            return match.group(0)
        return _lookup(name, environment, defaults)

    return VARIABLE_PATTERN.sub(replace_var, template)


def _has_value(name: str, environment: Mapping[str, Any], defaults: Optional[Mapping[str, Any]]) -> bool:
    if name in environment:
        return True
    if defaults:
        default = defaults.get(name)
        return default is not None and default != ''
    return False


def missing_variables(
    names: Iterable[str],
    environment: Mapping[str, Any],
    defaults: Optional[Mapping[str, Any]] = None
) -> List[str]:
    """Names with neither a value nor a non-empty default, in order"""
    return [name for name in names if not _has_value(name, environment, defaults)]


def validate_required(
    names: Iterable[str],
    environment: Mapping[str, Any],
    defaults: Optional[Mapping[str, Any]] = None
) -> bool:
    """True when every name has a value or a non-empty default"""
    return not missing_variables(names, environment, defaults)


class VariableResolver:
    """
    Resolves variable references against a flow's variable environment.

    Examples:
        {{customer_query}} -> "Where is my refund?"
        {{node_n2_output}} -> "Refunds take 5 days"
        {{missing}} -> "" (or its default)
    """

    def __init__(self, environment: Optional[Dict[str, Any]] = None,
                 defaults: Optional[Dict[str, Any]] = None):
        """
        Initialize resolver with available data.

        Args:
            environment: Variable environment (shared, not copied)
            defaults: Default values used when a name is absent
        """
        self.environment = environment if environment is not None else {}
        self.defaults = defaults or {}

    def resolve(self, value: Any) -> Any:
        """
        Resolve variables in value (recursively handles dicts, lists, strings).

        Args:
            value: Value to resolve (can be string, dict, list, or primitive)

        Returns:
            Value with all {{variables}} resolved
        """
        if isinstance(value, str):
            return resolve(value, self.environment, self.defaults)
        elif isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.resolve(item) for item in value]
        else:
            # Primitive value (int, bool, None, etc)
            return value

    def extract(self, value: Any) -> List[str]:
        """Collect placeholder names in value, in first-occurrence order"""
        names: List[str] = []

        def collect(val):
            if isinstance(val, str):
                for name in extract_variable_names(val):
                    if name not in names:
                        names.append(name)
            elif isinstance(val, dict):
                for v in val.values():
                    collect(v)
            elif isinstance(val, list):
                for item in val:
                    collect(item)

        collect(value)
        return names

    def validate(self, value: Any) -> List[str]:
        """
        Validate that all variables in value can be resolved.

        Returns:
            List of unresolved variable names (empty if all valid)
        """
        return missing_variables(self.extract(value), self.environment, self.defaults)

    def add_node_output(self, node_id: str, output: Any):
        """
        Add output from a completed node.

        Args:
            node_id: Node id (exposed as {{node_<id>_output}})
            output: Node's output value
        """
        self.environment[node_output_key(node_id)] = output
        logger.debug(f"Added node output for: {node_id}")

    def get_available_variables(self) -> List[str]:
        """List of names currently resolvable, environment first"""
        names = list(self.environment.keys())
        names.extend(name for name in self.defaults if name not in self.environment)
        return names
