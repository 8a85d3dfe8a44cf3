"""Tests for the parameter model and the parameter file parser."""

import dataclasses
from pathlib import Path

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from rcm_kinematics.core import (
    ACTIVE_JOINT_NAMES,
    PASSIVE_JOINT_NAMES,
    JointLimits,
    MechanismParameters,
    default_parameters,
)
from rcm_kinematics.errors import InvalidInputError, InvalidParameterError, ParameterFileError
from rcm_kinematics.io import load_parameters, parse_parameters

FIXTURES = Path(__file__).parent / "fixtures"


def test_default_parameters_structure():
    """Test the nominal parameter record is complete and valid."""
    params = default_parameters()

    assert isinstance(params, MechanismParameters)
    assert params.active_dof == 7
    assert params.passive_dof == 6
    assert params.active_limits.names == ACTIVE_JOINT_NAMES
    assert params.passive_limits.names == PASSIVE_JOINT_NAMES

    for name, value in params.lengths().items():
        assert value > 0.0, f"{name} should be positive"

    for limits in (params.active_limits, params.passive_limits):
        assert limits.lower.shape == (limits.dof,)
        assert jnp.all(limits.lower <= limits.default)
        assert jnp.all(limits.default <= limits.upper)


def test_parameters_are_immutable():
    """Test records cannot be mutated and updates produce copies."""
    params = default_parameters()
    with pytest.raises(dataclasses.FrozenInstanceError):
        params.wrist_length = 1.0

    longer = params.with_updates(wrist_length=0.02)
    assert longer.wrist_length == 0.02
    assert params.wrist_length == 0.009


def test_parameters_are_pytrees():
    """Test the record flattens into leaves and survives a round trip."""
    params = default_parameters()
    leaves, treedef = jax.tree_util.tree_flatten(params)
    rebuilt = jax.tree_util.tree_unflatten(treedef, leaves)

    assert rebuilt.active_limits.names == ACTIVE_JOINT_NAMES
    np.testing.assert_allclose(rebuilt.passive_limits.upper, params.passive_limits.upper)


@pytest.mark.parametrize("name", ["wrist_length", "shaft_radius", "rcm_drop", "hub_radius"])
@pytest.mark.parametrize("value", [0.0, -0.1, float("nan")])
def test_non_positive_lengths_rejected(name, value):
    """Test lengths and radii must be strictly positive."""
    with pytest.raises(InvalidParameterError):
        default_parameters().with_updates(**{name: value})


def test_default_outside_limits_rejected():
    """Test a default configuration outside its limits is rejected."""
    rows = [(n, -1.0, 1.0, 0.0) for n in PASSIVE_JOINT_NAMES]
    rows[2] = ("elbow", -1.0, 1.0, 2.0)
    with pytest.raises(InvalidParameterError, match="elbow"):
        default_parameters().with_updates(passive_limits=JointLimits.from_rows(rows))


def test_wrong_joint_count_rejected():
    """Test a joint table of the wrong arity is rejected."""
    rows = [(n, -1.0, 1.0, 0.0) for n in PASSIVE_JOINT_NAMES[:5]]
    with pytest.raises(InvalidParameterError):
        default_parameters().with_updates(passive_limits=JointLimits.from_rows(rows))


def test_joint_limit_accessors():
    """Test min/max accessors and index validation."""
    limits = default_parameters().active_limits
    for i in range(limits.dof):
        assert limits.minimum(i) <= limits.maximum(i)

    with pytest.raises(InvalidInputError):
        limits.minimum(limits.dof)
    with pytest.raises(InvalidInputError):
        limits.maximum(-1)
    with pytest.raises(InvalidInputError):
        limits.minimum(1.5)


def test_limit_violations():
    """Test joints outside their bounds are reported by name."""
    limits = default_parameters().active_limits
    q = limits.default.at[4].set(2.0)
    assert not limits.contains(q)
    assert limits.violations(q) == ("wrist_pitch",)
    assert limits.contains(limits.default)


def test_load_parameter_file():
    """Test loading a parameter file with overrides and full joint table."""
    params = load_parameters(str(FIXTURES / "training_arm.xml"))

    assert isinstance(params, MechanismParameters)
    assert params.wrist_length == pytest.approx(0.010)
    assert params.gripper_length == pytest.approx(0.015)
    assert params.holder_offset == pytest.approx(0.35)
    assert params.link1_length == pytest.approx(0.40)

    # Lengths not listed keep their nominal value
    nominal = default_parameters()
    assert params.rcm_offset == nominal.rcm_offset
    assert params.hub_radius == nominal.hub_radius

    assert params.active_limits.maximum(5) == pytest.approx(1.2)
    np.testing.assert_allclose(params.active_limits.default[2], 0.08)

    # The passive section lists no joints, so its limits are nominal
    np.testing.assert_allclose(params.passive_limits.lower, nominal.passive_limits.lower)


def test_parse_parameters_from_string():
    """Test parsing a document held in memory."""
    params = parse_parameters(
        '<mechanism name="m"><active><length name="link_radius" value="0.03"/></active></mechanism>'
    )
    assert params.link_radius == pytest.approx(0.03)


def test_parser_rejects_bad_documents():
    """Test the parser's error reporting."""
    with pytest.raises(ParameterFileError):
        load_parameters(str(FIXTURES / "does_not_exist.xml"))

    with pytest.raises(ParameterFileError, match="in order"):
        load_parameters(str(FIXTURES / "bad_joint_order.xml"))

    with pytest.raises(ParameterFileError, match="root element"):
        parse_parameters("<robot/>")

    with pytest.raises(ParameterFileError, match="unknown"):
        parse_parameters('<mechanism><active><length name="tail" value="1"/></active></mechanism>')

    with pytest.raises(ParameterFileError, match="non-numeric"):
        parse_parameters('<mechanism><passive><length name="rcm_drop" value="far"/></passive></mechanism>')

    with pytest.raises(ParameterFileError, match="missing"):
        parse_parameters('<mechanism><passive><length name="rcm_drop"/></passive></mechanism>')

    with pytest.raises(ParameterFileError):
        parse_parameters("<mechanism>")

    with pytest.raises(ParameterFileError):
        parse_parameters(
            '<mechanism><active><length name="shaft_radius" value="-1"/></active></mechanism>'
        )
