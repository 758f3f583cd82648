from __future__ import annotations

import re
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

# Ids that denote the same semantic entity in every compilation (root mix sink, tempo clock).
RESERVED_MODULE_IDS = frozenset({"root", "root_clock"})

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_FROZEN = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Param tree variants
# ---------------------------------------------------------------------------


class Disconnected(BaseModel):
    model_config = _FROZEN

    tagged: bool = False  # parsed from {"type": "disconnected"} rather than null


class Value(BaseModel):
    model_config = _FROZEN

    value: float


class Cable(BaseModel):
    model_config = _FROZEN

    module: str  # producer module ID
    port: str
    channel: int | None = None


class Flag(BaseModel):
    model_config = _FROZEN

    value: bool


class Text(BaseModel):
    model_config = _FROZEN

    value: str


class ParamList(BaseModel):
    model_config = _FROZEN

    items: tuple[Any, ...] = ()


class ParamStruct(BaseModel):
    model_config = _FROZEN

    fields: dict[str, Any] = {}


class Opaque(BaseModel):
    """Malformed or foreign param value, compared with plain equality."""

    model_config = _FROZEN

    value: Any = None


ParamTree = Union[Disconnected, Value, Cable, Flag, Text, ParamList, ParamStruct, Opaque]

_PARAM_VARIANTS = (Disconnected, Value, Cable, Flag, Text, ParamList, ParamStruct, Opaque)


def parse_param(raw: Any) -> ParamTree:
    """Convert compiler JSON (or an already parsed variant) into a param tree.

    ``{"type": "cable", ...}`` objects with string ``module``/``port`` (and an
    optional integer ``channel``) become :class:`Cable` leaves; cable- or
    value-tagged objects with the wrong shape become :class:`Opaque`. Anything
    that is not JSON data is also kept as :class:`Opaque`. ``null`` and the
    tagged disconnected form both parse to :class:`Disconnected` and dump back
    in the form they came in.
    """
    if isinstance(raw, _PARAM_VARIANTS):
        return raw
    if raw is None:
        return Disconnected()
    if isinstance(raw, bool):
        return Flag(value=raw)
    if isinstance(raw, (int, float)):
        return Value(value=float(raw))
    if isinstance(raw, str):
        return Text(value=raw)
    if isinstance(raw, (list, tuple)):
        return ParamList(items=tuple(parse_param(item) for item in raw))
    if isinstance(raw, dict):
        tag = raw.get("type")
        if tag == "cable":
            module, port, channel = raw.get("module"), raw.get("port"), raw.get("channel")
            if (
                isinstance(module, str)
                and isinstance(port, str)
                and (channel is None or (isinstance(channel, int) and not isinstance(channel, bool)))
            ):
                return Cable(module=module, port=port, channel=channel)
            return Opaque(value=raw)
        if tag == "value":
            value = raw.get("value")
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return Value(value=float(value))
            return Opaque(value=raw)
        if tag == "disconnected":
            return Disconnected(tagged=True)
        return ParamStruct(fields={str(k): parse_param(v) for k, v in raw.items()})
    return Opaque(value=raw)


def dump_param(tree: ParamTree) -> Any:
    """Inverse of :func:`parse_param`: return JSON-compatible data."""
    if isinstance(tree, Disconnected):
        return {"type": "disconnected"} if tree.tagged else None
    if isinstance(tree, Cable):
        data: dict[str, Any] = {"type": "cable", "module": tree.module, "port": tree.port}
        if tree.channel is not None:
            data["channel"] = tree.channel
        return data
    if isinstance(tree, (Value, Flag, Text, Opaque)):
        return tree.value
    if isinstance(tree, ParamList):
        return [dump_param(item) for item in tree.items]
    if isinstance(tree, ParamStruct):
        return {k: dump_param(v) for k, v in tree.fields.items()}
    return tree


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


class ModuleState(BaseModel):
    model_config = _CAMEL

    id: str
    module_type: str = Field(min_length=1)
    id_is_explicit: bool | None = None
    params: dict[str, Any] = {}

    @field_validator("params", mode="before")
    @classmethod
    def _parse_params(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("params must be a mapping of param name to value")
        return {str(k): parse_param(v) for k, v in value.items()}

    @field_serializer("params")
    def _dump_params(self, params: dict[str, Any]) -> dict[str, Any]:
        return {k: dump_param(v) for k, v in params.items()}


def is_implicit_id(module_id: str, module_type: str) -> bool:
    """Return True if the ID looks compiler-generated (``{moduleType}-{counter}``)."""
    return re.fullmatch(rf"{re.escape(module_type)}-\d+", module_id) is not None


def is_explicit_id(module: ModuleState) -> bool:
    """Return True if the module's ID was authored by the user.

    The compiler's ``id_is_explicit`` flag wins when present; older graphs
    without it fall back to the ID pattern.
    """
    if isinstance(module.id_is_explicit, bool):
        return module.id_is_explicit
    if module.id in RESERVED_MODULE_IDS:
        return True
    return not is_implicit_id(module.id, module.module_type)


# ---------------------------------------------------------------------------
# Scopes & remap hints
# ---------------------------------------------------------------------------


class ScopeItem(BaseModel):
    model_config = _CAMEL

    type: Literal["ModuleOutput"] = "ModuleOutput"
    module_id: str
    port_name: str


class Scope(BaseModel):
    model_config = _CAMEL

    item: ScopeItem
    ms_per_frame: int = 500
    trigger_threshold: int | None = None


class ModuleIdRemap(BaseModel):
    model_config = _CAMEL

    from_id: str = Field(alias="from")
    to: str


# ---------------------------------------------------------------------------
# Top-level graph
# ---------------------------------------------------------------------------


class PatchGraph(BaseModel):
    model_config = _CAMEL

    modules: list[ModuleState] = []
    scopes: list[Scope] = []
    module_id_remaps: list[ModuleIdRemap] | None = None

    def module(self, module_id: str) -> ModuleState | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None
