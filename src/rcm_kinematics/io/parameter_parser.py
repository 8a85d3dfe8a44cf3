"""Parser for mechanism parameter files.

A parameter file is a small XML document describing one arm::

    <mechanism name="psm">
      <active>
        <length name="wrist_length" value="0.009"/>
        <joint name="yaw" lower="-1.5" upper="1.5" default="0.0"/>
        ...
      </active>
      <passive>
        <length name="rcm_drop" value="0.45"/>
        <joint name="column" lower="0.0" upper="0.4" default="0.2"/>
        ...
      </passive>
    </mechanism>

Lengths that are not listed keep their nominal value. A section that lists
joints must list all of them, in configuration order.
"""

import logging
from typing import Dict, List, Tuple

from lxml import etree

from rcm_kinematics.core.parameters import (
    ACTIVE_JOINT_NAMES,
    ACTIVE_LENGTH_NAMES,
    PASSIVE_JOINT_NAMES,
    PASSIVE_LENGTH_NAMES,
    JointLimits,
    MechanismParameters,
    default_parameters,
)
from rcm_kinematics.errors import InvalidParameterError, ParameterFileError

logger = logging.getLogger(__name__)


def load_parameters(path: str) -> MechanismParameters:
    """Load a parameter file into a validated MechanismParameters record.

    Args:
        path: Path to the XML parameter file.

    Returns:
        MechanismParameters: the immutable parameter record.

    Raises:
        ParameterFileError: unreadable file, malformed XML, unknown or
            non-numeric entries, or an incomplete joint table.
    """
    try:
        tree = etree.parse(str(path))
    except (OSError, etree.XMLSyntaxError) as exc:
        raise ParameterFileError(f"cannot read parameter file {path}: {exc}") from exc
    return parameters_from_element(tree.getroot(), source=str(path))


def parse_parameters(text: str) -> MechanismParameters:
    """Parse a parameter document held in a string."""
    try:
        root = etree.fromstring(text.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise ParameterFileError(f"malformed parameter document: {exc}") from exc
    return parameters_from_element(root, source="<string>")


def parameters_from_element(root, source: str = "<element>") -> MechanismParameters:
    """Build a parameter record from a parsed ``<mechanism>`` element."""
    if root.tag != "mechanism":
        raise ParameterFileError(f"{source}: root element must be <mechanism>, got <{root.tag}>")

    nominal = default_parameters()
    changes: Dict[str, object] = {}

    sections = (
        ("active", ACTIVE_LENGTH_NAMES, ACTIVE_JOINT_NAMES, "active_limits"),
        ("passive", PASSIVE_LENGTH_NAMES, PASSIVE_JOINT_NAMES, "passive_limits"),
    )
    for tag, length_names, joint_names, limits_field in sections:
        section = root.find(tag)
        if section is None:
            logger.debug("%s: no <%s> section, keeping nominal values", source, tag)
            continue

        changes.update(_parse_lengths(section, length_names, source))

        rows = _parse_joints(section, joint_names, source)
        if rows:
            changes[limits_field] = JointLimits.from_rows(rows)

    try:
        params = nominal.with_updates(**changes)
    except InvalidParameterError as exc:
        raise ParameterFileError(f"{source}: {exc}") from exc

    logger.debug(
        "loaded parameters for '%s' from %s (%d overrides)",
        root.get("name", "unnamed"), source, len(changes),
    )
    return params


def _parse_lengths(section, allowed: Tuple[str, ...], source: str) -> Dict[str, float]:
    lengths: Dict[str, float] = {}
    for elem in section.findall("length"):
        name = elem.get("name")
        if name not in allowed:
            raise ParameterFileError(f"{source}: unknown <{section.tag}> length '{name}'")
        lengths[name] = _float_attr(elem, "value", source)
    return lengths


def _parse_joints(section, expected: Tuple[str, ...], source: str) -> List[tuple]:
    rows = []
    for elem in section.findall("joint"):
        rows.append((
            elem.get("name"),
            _float_attr(elem, "lower", source),
            _float_attr(elem, "upper", source),
            _float_attr(elem, "default", source),
        ))

    if not rows:
        return rows

    names = tuple(r[0] for r in rows)
    if names != expected:
        raise ParameterFileError(
            f"{source}: <{section.tag}> joints must be {', '.join(expected)} in order, "
            f"got {', '.join(str(n) for n in names)}"
        )
    return rows


def _float_attr(elem, attr: str, source: str) -> float:
    raw = elem.get(attr)
    if raw is None:
        raise ParameterFileError(
            f"{source}: <{elem.tag} name='{elem.get('name')}'> is missing '{attr}'"
        )
    try:
        return float(raw)
    except ValueError as exc:
        raise ParameterFileError(
            f"{source}: <{elem.tag} name='{elem.get('name')}'> has non-numeric {attr}={raw!r}"
        ) from exc
