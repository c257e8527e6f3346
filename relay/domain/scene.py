"""Scene description → `.rbxmx` XML.

The input is the JSON shape produced by the Studio plugin:

    {"objects": [{"ClassName": "Part", "Name": "Block",
                  "Properties": {"Size": {"type": "Vector3", "x": 4, "y": 1, "z": 2}},
                  "Children": [...]}]}

Parsing is done up front into typed nodes so a malformed document fails with
`ParseError` before a single line of XML is produced.
"""
from __future__ import annotations

import json
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ParseError

__all__ = [
    "IDENTITY_CFRAME",
    "Scalar",
    "Vector3",
    "CFrame",
    "Color3",
    "TypedValue",
    "SceneNode",
    "SceneDocument",
    "escape_xml",
    "parse_typed_value",
    "parse_document",
    "render_document",
    "serialize",
]

IDENTITY_CFRAME: tuple[float, ...] = (0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 1)
_CFRAME_LEN = len(IDENTITY_CFRAME)
_INDENT = "  "

# `&` must go first so already-produced entities are not escaped again.
_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


# ------------------------
# Typed values
# ------------------------
class _Value(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Scalar(_Value):
    text: str = ""


class _Triple(_Value):
    @field_validator("*", mode="before")
    @classmethod
    def _missing_is_zero(cls, v: Any) -> Any:
        # JSON null or an omitted component encodes as 0
        return 0 if v is None else v


class Vector3(_Triple):
    x: float = 0
    y: float = 0
    z: float = 0


class Color3(_Triple):
    r: float = 0
    g: float = 0
    b: float = 0


class CFrame(_Value):
    """Translation (X, Y, Z) followed by the row-major rotation matrix R00..R22."""

    components: tuple[float, ...] = IDENTITY_CFRAME

    @field_validator("components", mode="before")
    @classmethod
    def _identity_unless_complete(cls, v: Any) -> Any:
        if not isinstance(v, (list, tuple)) or len(v) < _CFRAME_LEN:
            return IDENTITY_CFRAME
        return tuple(v[:_CFRAME_LEN])


TypedValue = Union[Scalar, Vector3, CFrame, Color3]

_TYPED_KINDS: dict[str, type[_Value]] = {
    "Vector3": Vector3,
    "CFrame": CFrame,
    "Color3": Color3,
}


# ------------------------
# Tree
# ------------------------
@dataclass
class SceneNode:
    class_name: str
    name: str
    properties: dict[str, TypedValue] = field(default_factory=dict)
    children: list["SceneNode"] = field(default_factory=list)


@dataclass
class SceneDocument:
    objects: list[SceneNode] = field(default_factory=list)


# ------------------------
# Text helpers
# ------------------------
def escape_xml(value: Any) -> str:
    """Escape the five XML special characters in `str(value)`."""
    s = value if isinstance(value, str) else _text(value)
    for char, entity in _XML_ESCAPES:
        s = s.replace(char, entity)
    return s


def _number(v: float) -> str:
    """Render a number the way JSON writes it (4, not 4.0)."""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return repr(v) if isinstance(v, float) else str(v)


def _text(value: Any) -> str:
    """String form of a JSON scalar."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number(value)
    return str(value)


# ------------------------
# Parsing
# ------------------------
def parse_typed_value(raw: Any, *, strict: bool = False) -> TypedValue:
    """Classify a raw property value into one of the closed set of kinds.

    Primitives are scalars. Objects dispatch on their `type` key; without a
    recognised `type` they fall back to a scalar holding `value` (or empty),
    unless `strict` is set, in which case an unknown `type` is a ParseError.
    """
    if not isinstance(raw, (dict, list)):
        return Scalar(text=_text(raw))

    kind = raw.get("type") if isinstance(raw, dict) else None
    model = _TYPED_KINDS.get(kind) if isinstance(kind, str) else None
    if model is None:
        if strict and kind is not None:
            raise ParseError(f"Unknown property type: {kind!r}")
        inner = raw.get("value") if isinstance(raw, dict) else None
        return Scalar(text=_text(inner) if inner else "")

    try:
        return model.model_validate({k: v for k, v in raw.items() if k != "type"})
    except ValidationError as e:
        raise ParseError(f"Invalid {kind} value: {e.errors()[0]['msg']}") from e


def _parse_node(raw: Any, *, strict: bool, path: str) -> SceneNode:
    if not isinstance(raw, dict):
        raise ParseError(f"{path} must be an object")

    class_name = raw.get("ClassName")
    if not isinstance(class_name, str) or not class_name:
        raise ParseError(f"{path}.ClassName must be a non-empty string")

    name = raw.get("Name")
    name = class_name if name is None else _text(name)

    raw_props = raw.get("Properties")
    if raw_props is None:
        raw_props = {}
    if not isinstance(raw_props, dict):
        raise ParseError(f"{path}.Properties must be an object")
    properties = {
        str(prop): parse_typed_value(value, strict=strict) for prop, value in raw_props.items()
    }

    raw_children = raw.get("Children")
    if raw_children is None:
        raw_children = []
    if not isinstance(raw_children, list):
        raise ParseError(f"{path}.Children must be a list")
    children = [
        _parse_node(child, strict=strict, path=f"{path}.Children[{i}]")
        for i, child in enumerate(raw_children)
    ]
    return SceneNode(class_name=class_name, name=name, properties=properties, children=children)


def parse_document(data: str | bytes | Mapping[str, Any], *, strict: bool = False) -> SceneDocument:
    """Validate a scene description (dict or JSON text) into a `SceneDocument`."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise ParseError("Scene data is not valid JSON") from e

    if not isinstance(data, Mapping):
        raise ParseError("Scene data must be a JSON object")

    objects = data.get("objects")
    if objects is None:
        return SceneDocument()
    if not isinstance(objects, list):
        raise ParseError("objects must be a list")

    try:
        nodes = [_parse_node(o, strict=strict, path=f"objects[{i}]") for i, o in enumerate(objects)]
    except RecursionError as e:
        raise ParseError("Scene tree is nested too deeply") from e
    return SceneDocument(objects=nodes)


# ------------------------
# Rendering
# ------------------------
def _new_referent_factory() -> Callable[[], str]:
    seen: set[str] = set()

    def make() -> str:
        while True:
            ref = secrets.token_hex(16)
            if ref not in seen:
                seen.add(ref)
                return ref

    return make


def _render_property(name: str, value: TypedValue, depth: int, out: list[str]) -> None:
    tabs = _INDENT * depth
    attr = escape_xml(name)

    if isinstance(value, Vector3):
        out.append(f'{tabs}<Vector3 name="{attr}">')
        out.append(f"{tabs}  <X>{_number(value.x)}</X>")
        out.append(f"{tabs}  <Y>{_number(value.y)}</Y>")
        out.append(f"{tabs}  <Z>{_number(value.z)}</Z>")
        out.append(f"{tabs}</Vector3>")
    elif isinstance(value, CFrame):
        c = [_number(n) for n in value.components]
        out.append(f'{tabs}<CoordinateFrame name="{attr}">')
        out.append(f"{tabs}  <X>{c[0]}</X><Y>{c[1]}</Y><Z>{c[2]}</Z>")
        out.append(f"{tabs}  <R00>{c[3]}</R00><R01>{c[4]}</R01><R02>{c[5]}</R02>")
        out.append(f"{tabs}  <R10>{c[6]}</R10><R11>{c[7]}</R11><R12>{c[8]}</R12>")
        out.append(f"{tabs}  <R20>{c[9]}</R20><R21>{c[10]}</R21><R22>{c[11]}</R22>")
        out.append(f"{tabs}</CoordinateFrame>")
    elif isinstance(value, Color3):
        out.append(f'{tabs}<Color3 name="{attr}">')
        out.append(f"{tabs}  <R>{_number(value.r)}</R>")
        out.append(f"{tabs}  <G>{_number(value.g)}</G>")
        out.append(f"{tabs}  <B>{_number(value.b)}</B>")
        out.append(f"{tabs}</Color3>")
    else:
        out.append(f'{tabs}<string name="{attr}">{escape_xml(value.text)}</string>')


def _render_node(
    node: SceneNode, depth: int, out: list[str], referent: Callable[[], str]
) -> None:
    tabs = _INDENT * depth
    out.append(f'{tabs}<Item class="{escape_xml(node.class_name)}" referent="RBX{referent()}">')
    out.append(f"{tabs}  <Properties>")
    out.append(f'{tabs}    <string name="Name">{escape_xml(node.name)}</string>')
    for prop, value in node.properties.items():
        _render_property(prop, value, depth + 2, out)
    out.append(f"{tabs}  </Properties>")
    for child in node.children:
        _render_node(child, depth + 1, out, referent)
    out.append(f"{tabs}</Item>")


def render_document(
    doc: SceneDocument, *, referent_factory: Optional[Callable[[], str]] = None
) -> str:
    """Emit the XML for an already-validated document."""
    referent = referent_factory or _new_referent_factory()
    out = ['<?xml version="1.0" encoding="UTF-8"?>', '<roblox version="4">']
    for node in doc.objects:
        _render_node(node, 1, out, referent)
    out.append("</roblox>")
    return "\n".join(out)


def serialize(
    data: str | bytes | Mapping[str, Any],
    *,
    strict: bool = False,
    referent_factory: Optional[Callable[[], str]] = None,
) -> str:
    """Parse and render a scene description in one step."""
    return render_document(parse_document(data, strict=strict), referent_factory=referent_factory)
