"""
Tests for the variable interpolation engine
"""

import pytest

from promptstudio.flow_engine.variable_resolver import (
    VariableResolver,
    extract_variable_names,
    missing_variables,
    node_output_key,
    resolve,
    stringify,
    validate_required,
)


class TestExtractVariableNames:
    """Test placeholder extraction"""

    def test_extracts_in_first_occurrence_order(self):
        """Test names come back in first occurrence order"""
        assert extract_variable_names("{{b}} and {{a}} then {{b}}") == ['b', 'a']

    def test_trims_names(self):
        """Test names are trimmed"""
        assert extract_variable_names("Hi {{ name }}, {{name}}") == ['name']

    def test_empty_and_none(self):
        """Test empty and None templates"""
        assert extract_variable_names("") == []
        assert extract_variable_names(None) == []

    def test_blank_placeholder_ignored(self):
        """Test blank placeholder is ignored"""
        assert extract_variable_names("{{   }} {{x}}") == ['x']

    def test_nested_braces_not_matched(self):
        """Test nested braces are not a placeholder"""
        assert extract_variable_names("{{a{b}}") == []

    def test_idempotent(self):
        """Test extraction is idempotent"""
        text = "{{x}} {{y}} {{x}} {{z}}"
        first = extract_variable_names(text)
        second = extract_variable_names(' '.join(f"{{{{{name}}}}}" for name in first))
        assert first == second == ['x', 'y', 'z']


class TestResolve:
    """Test template substitution"""

    def test_simple_substitution(self):
        """Test simple substitution"""
        assert resolve("Hello {{name}}!", {'name': 'Ada'}) == "Hello Ada!"

    def test_whitespace_inside_braces(self):
        """Test whitespace inside braces"""
        assert resolve("Hello {{ name }}!", {'name': 'Ada'}) == "Hello Ada!"

    def test_missing_becomes_empty(self):
        """Test missing variable resolves to empty string"""
        assert resolve("Hello {{name}}!", {}) == "Hello !"

    def test_default_used_when_missing(self):
        """Test default fills a missing variable"""
        assert resolve("Hello {{name}}!", {}, {'name': 'friend'}) == "Hello friend!"

    def test_environment_wins_over_default(self):
        """Test environment value wins over default"""
        assert resolve("{{name}}", {'name': 'Ada'}, {'name': 'friend'}) == "Ada"

    def test_no_resolvable_placeholder_left(self):
        """Test no resolvable placeholder remains after resolve"""
        template = "{{a}} {{b}} {{c}}"
        result = resolve(template, {'a': 1, 'b': 'two'}, {'c': 'three'})
        assert '{{' not in result
        assert result == "1 two three"

    def test_value_rendering(self):
        """Test non-string values are rendered"""
        env = {'flag': True, 'count': 3, 'ratio': 0.5, 'none': None, 'items': [1, 2], 'obj': {'k': 'v'}}
        assert resolve("{{flag}}|{{count}}|{{ratio}}|{{none}}", env) == "True|3|0.5|"
        assert resolve("{{items}}", env) == "[1, 2]"
        assert resolve("{{obj}}", env) == '{"k": "v"}'

    def test_empty_template(self):
        """Test empty template"""
        assert resolve("", {'a': 1}) == ""
        assert resolve(None, {'a': 1}) == ""

    def test_node_output_reference(self):
        """Test resolving a node output variable"""
        env = {node_output_key('n2'): 'Refunds take 5 days'}
        assert resolve("Answer: {{node_n2_output}}", env) == "Answer: Refunds take 5 days"


class TestValidateRequired:
    """Test required-variable validation"""

    def test_present_in_environment(self):
        """Test variable present in environment"""
        assert validate_required(['a'], {'a': ''}) is True

    def test_non_empty_default_counts(self):
        """Test non-empty default satisfies a name"""
        assert validate_required(['a'], {}, {'a': 'x'}) is True

    def test_empty_default_does_not_count(self):
        """Test empty default does not satisfy a name"""
        assert validate_required(['a'], {}, {'a': ''}) is False
        assert validate_required(['a'], {}, {'a': None}) is False

    def test_missing_variables_in_order(self):
        """Test missing names are reported in order"""
        assert missing_variables(['a', 'b', 'c'], {'b': 1}) == ['a', 'c']


class TestStringify:
    """Test value rendering"""

    def test_string_unchanged(self):
        """Test strings are returned unchanged"""
        assert stringify('text') == 'text'

    def test_unserializable_falls_back_to_str(self):
        """Test unserializable value falls back to str"""
        class Thing:
            def __str__(self):
                return 'thing'
        assert stringify(Thing()) == 'thing'


class TestVariableResolver:
    """Test the stateful resolver"""

    def test_resolve_nested_structures(self):
        """Test resolving dicts and lists"""
        resolver = VariableResolver({'name': 'Ada', 'n': 5})
        value = {'greeting': 'Hi {{name}}', 'list': ['{{n}}', 7], 'flag': True}
        assert resolver.resolve(value) == {'greeting': 'Hi Ada', 'list': ['5', 7], 'flag': True}

    def test_extract_across_structure(self):
        """Test extracting names across a structure"""
        resolver = VariableResolver()
        assert resolver.extract({'a': '{{x}}', 'b': ['{{y}} {{x}}']}) == ['x', 'y']

    def test_validate_returns_missing(self):
        """Test validate returns missing names"""
        resolver = VariableResolver({'x': 1}, defaults={'z': 'dflt'})
        assert resolver.validate("{{x}} {{y}} {{z}}") == ['y']

    def test_add_node_output_shares_environment(self):
        """Test node output is added to the shared environment"""
        env = {}
        resolver = VariableResolver(env)
        resolver.add_node_output('n1', 'hello')
        assert env == {'node_n1_output': 'hello'}
        assert resolver.resolve("{{node_n1_output}}") == 'hello'

    def test_available_variables(self):
        """Test listing available variables"""
        resolver = VariableResolver({'a': 1}, defaults={'a': 0, 'b': 2})
        assert resolver.get_available_variables() == ['a', 'b']

    @pytest.mark.parametrize('template,expected', [
        ("{{x}}", "1"),
        ("{x}", "{x}"),
        ("{{ }}", "{{ }}"),
    ])
    def test_edge_templates(self, template, expected):
        """Test edge case templates"""
        assert VariableResolver({'x': 1}).resolve(template) == expected
