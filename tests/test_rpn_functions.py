#! /usr/bin/env py.test

import math

import pytest

from rpn_functions import DEFAULT_REGISTRY, FunctionRegistry, RegisteredFunction


def test_default_registry_has_only_power():
    assert DEFAULT_REGISTRY.names() == ["POWER"]
    power = DEFAULT_REGISTRY.lookup("POWER")
    assert power.arity == 2
    assert power(2.0, 10.0) == 1024.0


@pytest.mark.parametrize("name", ["POWER", "power", "Power", "pOwEr"])
def test_lookup_is_case_insensitive(name):
    assert DEFAULT_REGISTRY.is_registered(name)
    assert name in DEFAULT_REGISTRY
    assert DEFAULT_REGISTRY.lookup(name).name == "POWER"


def test_unknown_name():
    assert not DEFAULT_REGISTRY.is_registered("SQRT")
    with pytest.raises(KeyError):
        DEFAULT_REGISTRY.lookup("SQRT")


def test_names_are_canonicalised():
    registry = FunctionRegistry([RegisteredFunction("sqrt", 1, math.sqrt)])
    assert registry.names() == ["SQRT"]
    assert registry.lookup("Sqrt").name == "SQRT"


def test_with_function_leaves_original_untouched():
    extended = DEFAULT_REGISTRY.with_function("SQRT", 1, math.sqrt)
    assert extended.names() == ["POWER", "SQRT"]
    assert len(DEFAULT_REGISTRY) == 1
    assert not DEFAULT_REGISTRY.is_registered("SQRT")


def test_duplicate_registration_rejected():
    with pytest.raises(ValueError):
        DEFAULT_REGISTRY.with_function("power", 1, abs)


def test_negative_arity_rejected():
    with pytest.raises(ValueError):
        FunctionRegistry([RegisteredFunction("BAD", -1, abs)])


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_REGISTRY._functions["SQRT"] = RegisteredFunction("SQRT", 1, math.sqrt)
