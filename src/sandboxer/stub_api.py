"""
Stub Roblox API for sandboxed scripts.

Stub objects are Python values from ``sandboxer.stubs``. Lua sees each one
as an empty proxy table with a shared, locked metatable per type whose
metamethods call back into Python. The proxy-to-stub mapping lives in a
weak-keyed table that only the host can reach, so every field access from
Lua goes through the metamethods.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from operator import attrgetter
from typing import Any

from sandboxer.debug import log_debug
from sandboxer.errors import StubApiError
from sandboxer.interpreter import LuaInterpreter
from sandboxer.stubs import (
    ENUM_CATALOG,
    STUB_VALUE_TYPES,
    CFrame,
    Color3,
    StubInstance,
    UDim,
    UDim2,
    Vector3,
    values_equal,
)

LOCKED_METATABLE = "The metatable is locked"

STUB_GLOBALS: tuple[str, ...] = (
    "game",
    "Game",
    "workspace",
    "Workspace",
    "script",
    "Instance",
    "Vector3",
    "Color3",
    "CFrame",
    "UDim2",
    "Enum",
    "typeof",
)

_XYZ = {
    "X": attrgetter("x"),
    "Y": attrgetter("y"),
    "Z": attrgetter("z"),
    "x": attrgetter("x"),
    "y": attrgetter("y"),
    "z": attrgetter("z"),
}

_VALUE_FIELDS: dict[type, dict[str, Callable[[Any], Any]]] = {
    Vector3: _XYZ,
    Color3: {
        "R": attrgetter("r"),
        "G": attrgetter("g"),
        "B": attrgetter("b"),
        "r": attrgetter("r"),
        "g": attrgetter("g"),
        "b": attrgetter("b"),
    },
    CFrame: {**_XYZ, "Position": attrgetter("position"), "position": attrgetter("position")},
    UDim: {"Scale": attrgetter("scale"), "Offset": attrgetter("offset")},
    UDim2: {"X": attrgetter("x"), "Y": attrgetter("y")},
}

# Lua metamethod -> Python operator
_VALUE_OPERATORS: dict[type, dict[str, Callable[[Any, Any], Any]]] = {
    Vector3: {"__add": operator.add, "__sub": operator.sub, "__mul": operator.mul},
    CFrame: {"__mul": operator.mul},
}


class StubApi:
    """Builds stub globals inside one interpreter and converts values both ways."""

    def __init__(self, interpreter: LuaInterpreter) -> None:
        self._interp = interpreter
        # proxy table -> stub; weak keys let unreferenced value proxies be collected.
        self._registry = interpreter.new_table(metatable=interpreter.new_table({"__mode": "k"}))
        # id(instance) -> (instance, proxy); holding the instance keeps the id stable.
        self._instance_proxies: dict[int, tuple[StubInstance, Any]] = {}
        self._instance_methods = self._make_instance_methods()
        self._metatables: dict[type, Any] = {
            StubInstance: self._make_metatable(
                StubInstance.TYPE_NAME,
                {"__index": self._instance_index, "__newindex": self._instance_newindex},
            ),
        }
        for value_type in STUB_VALUE_TYPES:
            self._metatables[value_type] = self._make_value_metatable(value_type)

    def install(self) -> None:
        """Define every name in ``STUB_GLOBALS`` in the interpreter's globals."""
        game = self.wrap(StubInstance("DataModel", "game"))
        workspace = self.wrap(StubInstance("Workspace", "Workspace"))

        stub_globals = {
            "game": game,
            "Game": game,
            "workspace": workspace,
            "Workspace": workspace,
            "script": self.wrap(StubInstance("Script", "Script")),
            "Instance": self._library("Instance", new=self._instance_new),
            "Vector3": self._library("Vector3", new=self._vector3_new),
            "Color3": self._library("Color3", new=self._color3_new, fromRGB=self._color3_from_rgb),
            "CFrame": self._library("CFrame", new=self._cframe_new),
            "UDim2": self._library("UDim2", new=self._udim2_new),
            "Enum": self._readonly(
                "Enum",
                {
                    category: self._readonly(f"Enum.{category}", dict(items))
                    for category, items in ENUM_CATALOG.items()
                },
            ),
            "typeof": self._interp.function(self.typeof),
        }
        for name in STUB_GLOBALS:
            self._interp.set_global(name, stub_globals[name])
        log_debug(f"Installed stub API globals: {', '.join(STUB_GLOBALS)}")

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def wrap(self, value: Any) -> Any:
        """Return the Lua proxy for a stub value; other values pass through."""
        if isinstance(value, StubInstance):
            cached = self._instance_proxies.get(id(value))
            if cached is None:
                proxy = self._proxy_for(value)
                cached = self._instance_proxies[id(value)] = (value, proxy)
            return cached[1]
        if isinstance(value, STUB_VALUE_TYPES):
            return self._proxy_for(value)
        return value

    def _proxy_for(self, stub: Any) -> Any:
        proxy = self._interp.new_table(metatable=self._metatables[type(stub)])
        self._interp.raw_set(self._registry, proxy, stub)
        return proxy

    def unwrap(self, value: Any) -> Any:
        """Return the stub behind a proxy table, or None for anything else."""
        if not self._interp.is_table(value):
            return None
        return self._interp.raw_get(self._registry, value)

    def typeof(self, value: Any = None, *_: Any) -> str:
        stub = self.unwrap(value)
        if stub is not None:
            return stub.TYPE_NAME
        return self._interp.type_name(value)

    def _number(self, value: Any, position: int, func_name: str) -> float:
        if value is None:
            return 0.0
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise StubApiError(
            f"invalid argument #{position} to '{func_name}' "
            f"(number expected, got {self.typeof(value)})"
        )

    def _numbers(self, func_name: str, args: tuple[Any, ...], count: int) -> list[float]:
        padded = list(args[:count]) + [None] * (count - len(args))
        return [self._number(value, i, func_name) for i, value in enumerate(padded, start=1)]

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    def _vector3_new(self, *args: Any) -> Any:
        return self.wrap(Vector3(*self._numbers("Vector3.new", args, 3)))

    def _color3_new(self, *args: Any) -> Any:
        return self.wrap(Color3(*self._numbers("Color3.new", args, 3)))

    def _color3_from_rgb(self, *args: Any) -> Any:
        return self.wrap(Color3.from_rgb(*self._numbers("Color3.fromRGB", args, 3)))

    def _cframe_new(self, *args: Any) -> Any:
        return self.wrap(CFrame(*self._numbers("CFrame.new", args, 3)))

    def _udim2_new(self, *args: Any) -> Any:
        return self.wrap(UDim2.from_components(*self._numbers("UDim2.new", args, 4)))

    def _instance_new(self, class_name: Any = None, parent: Any = None, *_: Any) -> Any:
        if not isinstance(class_name, str):
            raise StubApiError(
                "invalid argument #1 to 'Instance.new' "
                f"(string expected, got {self.typeof(class_name)})"
            )
        instance = StubInstance(class_name)
        instance.set_parent(self._parent_argument(parent, "Instance.new"))
        return self.wrap(instance)

    # ------------------------------------------------------------------
    # Metatables
    # ------------------------------------------------------------------

    def _make_metatable(self, type_name: str, metamethods: dict[str, Callable[..., Any]]) -> Any:
        fields: dict[str, Any] = {
            name: self._interp.function(func) for name, func in metamethods.items()
        }
        fields.setdefault("__tostring", self._interp.function(self._tostring))
        fields["__metatable"] = LOCKED_METATABLE
        fields["__name"] = type_name
        return self._interp.new_table(fields)

    def _make_value_metatable(self, value_type: type) -> Any:
        type_name = value_type.TYPE_NAME
        metamethods: dict[str, Callable[..., Any]] = {
            "__index": self._value_index,
            "__newindex": lambda table, key, value: self._raise_readonly(type_name, key),
            "__eq": lambda left, right: values_equal(self.unwrap(left), self.unwrap(right)),
        }
        for metamethod, op in _VALUE_OPERATORS.get(value_type, {}).items():
            metamethods[metamethod] = self._binary_operator(metamethod, op)
        return self._make_metatable(type_name, metamethods)

    def _binary_operator(self, metamethod: str, op: Callable[[Any, Any], Any]) -> Callable:
        def apply(left: Any, right: Any) -> Any:
            try:
                result = op(self._operand(left), self._operand(right))
            except TypeError:
                raise StubApiError(
                    f"attempt to perform arithmetic ({metamethod}) on "
                    f"{self.typeof(left)} and {self.typeof(right)}"
                ) from None
            return self.wrap(result)

        return apply

    def _operand(self, value: Any) -> Any:
        stub = self.unwrap(value)
        return value if stub is None else stub

    def _tostring(self, table: Any) -> str:
        return str(self.unwrap(table))

    def _value_index(self, table: Any, key: Any) -> Any:
        value = self.unwrap(table)
        if not isinstance(key, str):
            return None
        getter = _VALUE_FIELDS.get(type(value), {}).get(key)
        if getter is None:
            return None
        return self.wrap(getter(value))

    def _raise_readonly(self, type_name: str, key: Any) -> None:
        raise StubApiError(f"{key} cannot be assigned to ({type_name} is read-only)")

    def _readonly(self, name: str, items: dict[str, Any]) -> Any:
        """A table that reads from *items* and rejects writes."""
        backing = self._interp.new_table(items)
        next_function = self._interp.next_function
        metatable = self._interp.new_table(
            {
                "__index": backing,
                "__newindex": self._interp.function(
                    lambda table, key, value: self._raise_readonly(name, key)
                ),
                "__pairs": self._interp.function(lambda table: (next_function, backing, None)),
                "__tostring": self._interp.function(lambda table: name),
                "__metatable": LOCKED_METATABLE,
            }
        )
        return self._interp.new_table(metatable=metatable)

    def _library(self, name: str, **constructors: Callable[..., Any]) -> Any:
        return self._readonly(
            name, {key: self._interp.function(func) for key, func in constructors.items()}
        )

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def _parent_argument(self, value: Any, where: str) -> StubInstance | None:
        if value is None:
            return None
        parent = self.unwrap(value)
        if not isinstance(parent, StubInstance):
            raise StubApiError(f"{where}: Parent must be an Instance, got {self.typeof(value)}")
        return parent

    def _self_instance(self, table: Any, member: str) -> StubInstance:
        instance = self.unwrap(table)
        if not isinstance(instance, StubInstance):
            raise StubApiError(f"Expected ':' not '.' calling member function {member}")
        return instance

    def _make_instance_methods(self) -> dict[str, Any]:
        def is_a(this: Any = None, class_name: Any = None, *_: Any) -> bool:
            return self._self_instance(this, "IsA").is_a(class_name)

        def get_full_name(this: Any = None, *_: Any) -> str:
            return self._self_instance(this, "GetFullName").full_name

        def find_first_child(this: Any = None, name: Any = None, recursive: Any = False, *_: Any):
            instance = self._self_instance(this, "FindFirstChild")
            return self.wrap(instance.find_first_child(name, bool(recursive)))

        def get_children(this: Any = None, *_: Any) -> Any:
            children = self._self_instance(this, "GetChildren").children
            return self._interp.to_lua_value([self.wrap(child) for child in children])

        def destroy(this: Any = None, *_: Any) -> None:
            self._self_instance(this, "Destroy").destroy()

        return {
            "IsA": self._interp.function(is_a),
            "GetFullName": self._interp.function(get_full_name),
            "FindFirstChild": self._interp.function(find_first_child),
            "GetChildren": self._interp.function(get_children),
            "Destroy": self._interp.function(destroy),
        }

    def _instance_index(self, table: Any, key: Any) -> Any:
        instance = self._self_instance(table, str(key))
        if key == "Name":
            return instance.name
        if key == "ClassName":
            return instance.class_name
        if key == "Parent":
            return self.wrap(instance.parent)
        if not isinstance(key, str):
            return None
        method = self._instance_methods.get(key)
        if method is not None:
            return method
        return instance.attributes.get(key)

    def _instance_newindex(self, table: Any, key: Any, value: Any) -> None:
        instance = self._self_instance(table, str(key))
        if not isinstance(key, str):
            raise StubApiError(f"{key} is not a valid member of {instance.class_name}")
        if key == "Name":
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise StubApiError(
                    f"Unable to assign property Name. string expected, got {self.typeof(value)}"
                )
            if not isinstance(value, str):
                value = self._interp.to_display_string(value)
            instance.name = value
        elif key == "Parent":
            instance.set_parent(self._parent_argument(value, "Parent"))
        elif key == "ClassName" or key in self._instance_methods:
            raise StubApiError(f"Unable to assign property {key}. Property is read only")
        elif value is None:
            instance.attributes.pop(key, None)
        else:
            instance.attributes[key] = value


def install_stub_api(interpreter: LuaInterpreter) -> StubApi:
    """Install the stub API into *interpreter*'s globals and return the bridge."""
    api = StubApi(interpreter)
    api.install()
    return api
