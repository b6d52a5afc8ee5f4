"""
Inert stand-ins for the Roblox object model.

These are plain Python types with no knowledge of Lua. ``sandboxer.stub_api``
exposes them to scripts through proxy tables.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar

from sandboxer.errors import StubApiError


def format_number(value: float) -> str:
    """Render a component the way Luau does: ``1`` rather than ``1.0``."""
    return "%.14g" % value


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(eq=False)
class StubInstance:
    """
    Instance-like object. The stub never materializes a hierarchy: ``parent``
    is informational only and ``children`` is always empty.
    """

    TYPE_NAME: ClassVar[str] = "Instance"

    class_name: str
    name: str | None = None
    parent: StubInstance | None = field(default=None, repr=False)
    attributes: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.name is None:
            self.name = self.class_name

    @property
    def children(self) -> tuple[StubInstance, ...]:
        return ()

    @property
    def full_name(self) -> str:
        path = [self.name]
        current = self.parent
        while current is not None:
            path.insert(0, current.name)
            current = current.parent
        return ".".join(path)

    def is_a(self, class_name: str) -> bool:
        return self.class_name == class_name

    def find_first_child(self, name: str, recursive: bool = False) -> StubInstance | None:
        return None

    def set_parent(self, parent: StubInstance | None) -> None:
        current = parent
        while current is not None:
            if current is self:
                raise StubApiError(
                    f"Attempt to set {self.full_name} as its own ancestor"
                )
            current = current.parent
        self.parent = parent

    def destroy(self) -> None:
        self.parent = None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Vector3:
    TYPE_NAME: ClassVar[str] = "Vector3"

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: object) -> Vector3:
        if not isinstance(other, Vector3):
            return NotImplemented
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: object) -> Vector3:
        if not isinstance(other, Vector3):
            return NotImplemented
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: object) -> Vector3:
        if not _is_number(scalar):
            return NotImplemented
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"{format_number(self.x)}, {format_number(self.y)}, {format_number(self.z)}"


@dataclass(frozen=True)
class Color3:
    TYPE_NAME: ClassVar[str] = "Color3"

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0

    @classmethod
    def from_rgb(cls, r: float = 0, g: float = 0, b: float = 0) -> Color3:
        return cls(r / 255, g / 255, b / 255)

    def is_close(self, other: Color3, tolerance: float = 1e-9) -> bool:
        return all(
            math.isclose(a, b, abs_tol=tolerance)
            for a, b in ((self.r, other.r), (self.g, other.g), (self.b, other.b))
        )

    def __str__(self) -> str:
        return f"{format_number(self.r)}, {format_number(self.g)}, {format_number(self.b)}"


@dataclass(frozen=True)
class CFrame:
    TYPE_NAME: ClassVar[str] = "CFrame"

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @property
    def position(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)

    def __mul__(self, other: object) -> CFrame:
        # Stub frames carry no rotation, so composition is translation only.
        if not isinstance(other, CFrame):
            return NotImplemented
        return CFrame(self.x + other.x, self.y + other.y, self.z + other.z)

    def __str__(self) -> str:
        return f"{format_number(self.x)}, {format_number(self.y)}, {format_number(self.z)}"


@dataclass(frozen=True)
class UDim:
    TYPE_NAME: ClassVar[str] = "UDim"

    scale: float = 0.0
    offset: float = 0.0

    def __str__(self) -> str:
        return f"{format_number(self.scale)}, {format_number(self.offset)}"


@dataclass(frozen=True)
class UDim2:
    TYPE_NAME: ClassVar[str] = "UDim2"

    x: UDim = field(default_factory=UDim)
    y: UDim = field(default_factory=UDim)

    @classmethod
    def from_components(
        cls,
        x_scale: float = 0,
        x_offset: float = 0,
        y_scale: float = 0,
        y_offset: float = 0,
    ) -> UDim2:
        return cls(UDim(x_scale, x_offset), UDim(y_scale, y_offset))

    def __str__(self) -> str:
        return f"{{{self.x}}}, {{{self.y}}}"


STUB_VALUE_TYPES: tuple[type, ...] = (Vector3, Color3, CFrame, UDim, UDim2)

ENUM_CATALOG: MappingProxyType[str, MappingProxyType[str, int]] = MappingProxyType(
    {
        "Material": MappingProxyType(
            {"Plastic": 256, "Wood": 512, "Concrete": 816, "Metal": 1088}
        ),
        "PartType": MappingProxyType({"Ball": 0, "Block": 1, "Cylinder": 2}),
    }
)


def values_equal(left: object, right: object) -> bool:
    """Equality used for Lua ``==``; colors compare within floating tolerance."""
    if isinstance(left, Color3) and isinstance(right, Color3):
        return left.is_close(right)
    return left == right
