"""Tests for the stub API as seen from Lua."""

from __future__ import annotations

import pytest

from sandboxer.errors import LuaExecutionError
from sandboxer.stub_api import LOCKED_METATABLE, STUB_GLOBALS
from sandboxer.stubs import StubInstance, Vector3
from tests.conftest import run_lua


class TestInstallation:
    def test_defines_every_stub_global(self, interpreter, stub_api):
        for name in STUB_GLOBALS:
            assert interpreter.get_global(name) is not None, name

    def test_aliases_share_one_object(self, interpreter, stub_api):
        assert run_lua(interpreter, "return game == Game, workspace == Workspace") == (True, True)

    def test_singletons(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            "return game.Name, game.ClassName, workspace.Name, script.Name, script.ClassName",
        )
        assert result == ("game", "DataModel", "Workspace", "Script", "Script")

    def test_game_full_name(self, interpreter, stub_api):
        assert run_lua(interpreter, "return game:GetFullName()") == "game"

    def test_metatables_are_locked(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            "return getmetatable(game), getmetatable(Vector3.new()), getmetatable(Enum)",
        )
        assert result == (LOCKED_METATABLE,) * 3


class TestInstance:
    def test_new_with_parent(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local part = Instance.new("Part", workspace)
            return part.Name, part.Parent == workspace, part:GetFullName()
            """,
        )
        assert result == ("Part", True, "Workspace.Part")

    def test_is_a_exact_match(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            'local p = Instance.new("Part") return p:IsA("Part"), p:IsA("BasePart")',
        )
        assert result == (True, False)

    def test_children_are_never_materialized(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            Instance.new("Part", workspace)
            return workspace:FindFirstChild("Part"), #workspace:GetChildren()
            """,
        )
        assert result == (None, 0)

    def test_rename_and_reparent(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local model = Instance.new("Model", workspace)
            local part = Instance.new("Part")
            part.Name = "Brick"
            part.Parent = model
            return part:GetFullName(), tostring(part)
            """,
        )
        assert result == ("Workspace.Model.Brick", "Brick")

    def test_destroy_clears_parent(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local part = Instance.new("Part", workspace)
            part:Destroy()
            return part.Parent
            """,
        )
        assert result is None

    def test_host_object_not_exposed(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local hidden = game.__stub
            game.__stub = Vector3.new()
            return hidden, next(game), game:GetFullName(), typeof(game)
            """,
        )
        assert result == (None, None, "game", "Instance")

    def test_name_keeps_non_utf8_bytes(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            'local p = Instance.new("Part") p.Name = "\\255x" return p.Name == "\\255x", #p.Name',
        )
        assert result == (True, 2)

    def test_free_form_attributes(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local part = Instance.new("Part")
            part.Anchored = true
            return part.Anchored, part.Transparency
            """,
        )
        assert result == (True, None)

    def test_class_name_is_read_only(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, 'game.ClassName = "Other"')

    def test_parent_cycle_rejected(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(
                interpreter,
                """
                local a = Instance.new("Folder")
                local b = Instance.new("Folder", a)
                a.Parent = b
                """,
            )

    def test_parent_must_be_instance(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, 'Instance.new("Part", "workspace")')

    def test_method_called_with_dot(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError) as exc_info:
            run_lua(interpreter, 'return game.IsA("DataModel")')
        assert "Expected ':'" in str(exc_info.value)

    def test_unwrap_returns_same_python_object(self, interpreter, stub_api):
        game = stub_api.unwrap(interpreter.get_global("game"))
        assert isinstance(game, StubInstance)
        assert stub_api.unwrap(stub_api.wrap(game)) is game


class TestVector3:
    def test_add_is_non_mutating(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local a = Vector3.new(1, 2, 3)
            local b = Vector3.new(1, 1, 1)
            local c = a + b
            return c.X, c.Y, c.Z, a.X, a.Y, a.Z, b.X
            """,
        )
        assert result == (2, 3, 4, 1, 2, 3, 1)

    def test_add_equals_expected(self, interpreter, stub_api):
        assert run_lua(
            interpreter, "return Vector3.new(1, 2, 3) + Vector3.new(1, 1, 1) == Vector3.new(2, 3, 4)"
        ) is True

    def test_subtract_and_scale(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local d = Vector3.new(5, 5, 5) - Vector3.new(1, 2, 3)
            local s = 2 * Vector3.new(1, 2, 3)
            local t = Vector3.new(1, 2, 3) * 3
            return d.x, d.y, d.z, s.X, t.Z
            """,
        )
        assert result == (4, 3, 2, 2, 9)

    def test_missing_components_default_to_zero(self, interpreter, stub_api):
        assert run_lua(interpreter, "local v = Vector3.new() return v.X, v.Y, v.Z") == (0, 0, 0)
        assert run_lua(interpreter, "return Vector3.new(1, nil, 3).Y") == 0

    def test_tostring(self, interpreter, stub_api):
        assert run_lua(interpreter, "return tostring(Vector3.new(1, 2.5, 3))") == "1, 2.5, 3"

    def test_is_read_only(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "local v = Vector3.new() v.X = 5")

    def test_proxy_has_no_raw_fields(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            "local v = Vector3.new(1, 2, 3) return next(v), rawget(v, '__stub'), v.__stub",
        )
        assert result == (None, None, None)

    def test_cannot_swap_underlying_value(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local a, b = Vector3.new(1, 2, 3), Vector3.new(9, 9, 9)
            local ok = pcall(function() a.__stub = b.__stub end)
            return ok, tostring(a)
            """,
        )
        assert result == (False, "1, 2, 3")

    def test_rejects_non_numeric_argument(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "return Vector3.new('a')")

    def test_rejects_adding_number(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "return Vector3.new() + 1")

    def test_wrap_round_trips(self, interpreter, stub_api):
        proxy = stub_api.wrap(Vector3(1, 2, 3))
        assert stub_api.unwrap(proxy) == Vector3(1, 2, 3)


class TestOtherValueTypes:
    def test_color3_from_rgb_matches_new(self, interpreter, stub_api):
        assert run_lua(
            interpreter, "return Color3.fromRGB(255, 255, 255) == Color3.new(1, 1, 1)"
        ) is True

    def test_color3_components(self, interpreter, stub_api):
        result = run_lua(interpreter, "local c = Color3.new(0.5) return c.R, c.g, c.B")
        assert result == (0.5, 0, 0)

    def test_cframe_position(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local cf = CFrame.new(1, 2, 3)
            return cf.X, cf.Position.Z, typeof(cf.Position), tostring(cf)
            """,
        )
        assert result == (1, 3, "Vector3", "1, 2, 3")

    def test_cframe_multiply(self, interpreter, stub_api):
        result = run_lua(interpreter, "local cf = CFrame.new(1, 2, 3) * CFrame.new(1, 1, 1) return cf.Y")
        assert result == 3

    def test_udim2(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            """
            local u = UDim2.new(0.5, 10, 0, 20)
            return u.X.Scale, u.X.Offset, u.Y.Offset, tostring(u)
            """,
        )
        assert result == (0.5, 10, 20, "{0.5, 10}, {0, 20}")


class TestEnum:
    def test_catalog(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            "return Enum.Material.Plastic, Enum.Material.Metal, Enum.PartType.Cylinder",
        )
        assert result == (256, 1088, 2)

    def test_unknown_item_is_nil(self, interpreter, stub_api):
        assert run_lua(interpreter, "return Enum.Material.Glass") is None

    def test_is_read_only(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "Enum.Material.Glass = 1568")
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "Enum.Shape = {}")

    def test_constructor_libraries_are_read_only(self, interpreter, stub_api):
        with pytest.raises(LuaExecutionError):
            run_lua(interpreter, "Vector3.new = nil")


class TestTypeof:
    def test_stub_types(self, interpreter, stub_api):
        result = run_lua(
            interpreter,
            "return typeof(game), typeof(Vector3.new()), typeof(Color3.new()), typeof(UDim2.new())",
        )
        assert result == ("Instance", "Vector3", "Color3", "UDim2")

    def test_falls_back_to_lua_type(self, interpreter, stub_api):
        result = run_lua(interpreter, "return typeof(1), typeof('s'), typeof({}), typeof(nil)")
        assert result == ("number", "string", "table", "nil")
