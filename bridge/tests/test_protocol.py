"""Tests for bridge message encoding."""

from __future__ import annotations

import pytest

from gamecon_bridge.protocol import (
    bool_message,
    collision_message,
    create_message,
    destroy_message,
    format_message,
    int_message,
    is_valid_message,
    normalize_line,
    real_message,
    string_message,
    vector_message,
)


class TestEncoders:
    """Each encoder produces one newline-terminated wire line."""

    def test_bool(self) -> None:
        assert bool_message("light.on", True) == "light.on b 1\n"
        assert bool_message("light.on", False) == "light.on b 0\n"

    def test_int(self) -> None:
        assert int_message("score", 42) == "score i 42\n"

    def test_int_with_instance_id(self) -> None:
        """An instance id upper-cases the type and leads the quoted content."""
        assert int_message("enemy.health", 80, instance_id=3) == 'enemy.health I "3 80"\n'

    def test_real(self) -> None:
        assert real_message("engine.rpm", 1500.5) == "engine.rpm r 1500.5\n"

    def test_string_is_always_quoted(self) -> None:
        assert string_message("hud.text", "hello", instance_id=2) == 'hud.text S "2 hello"\n'
        assert string_message("hud.title", "single") == 'hud.title s "single"\n'

    def test_empty_string(self) -> None:
        assert string_message("hud.text", "") == 'hud.text s ""\n'

    def test_vector(self) -> None:
        assert (
            vector_message("player.pos", 1.0, -2.5, 3.0)
            == 'player.pos v "1.0 -2.5 3.0"\n'
        )

    def test_vector_with_instance_id(self) -> None:
        assert (
            vector_message("bullet.vel", 0, 0, 9.5, instance_id=12)
            == 'bullet.vel V "12 0.0 0.0 9.5"\n'
        )

    def test_collision(self) -> None:
        assert (
            collision_message("player", "wall", 2.5) == 'player c "wall 2.5"\n'
        )

    def test_create_and_destroy(self) -> None:
        assert create_message("enemy", 7) == "enemy.create i 7\n"
        assert destroy_message("enemy", 7) == "enemy.destroy i 7\n"
        assert create_message("level") == "level.create i 0\n"


class TestEncoderErrors:
    """Values that cannot be represented on the wire are rejected."""

    def test_name_with_space(self) -> None:
        with pytest.raises(ValueError, match="Message name"):
            bool_message("bad name", True)

    def test_empty_name(self) -> None:
        with pytest.raises(ValueError):
            int_message("", 1)

    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError, match="Unknown message type"):
            format_message("x", "q", ["1"])

    def test_string_with_quote(self) -> None:
        with pytest.raises(ValueError):
            string_message("hud.text", 'say "hi"')

    def test_string_with_space(self) -> None:
        with pytest.raises(ValueError, match="String value must not contain whitespace"):
            string_message("hud.text", "hello world")

    def test_string_with_newline(self) -> None:
        with pytest.raises(ValueError):
            string_message("hud.text", "two\nlines")

    def test_collision_other_name_with_space(self) -> None:
        with pytest.raises(ValueError, match="Other object name"):
            collision_message("player", "big wall", 1.0)


class TestLineHelpers:
    """Tests for line validation and framing."""

    def test_is_valid_message(self) -> None:
        assert is_valid_message("a b 1")
        assert not is_valid_message("")
        assert not is_valid_message("  \n")

    def test_normalize_line(self) -> None:
        assert normalize_line("a b 1") == "a b 1\n"
        assert normalize_line("a b 1\r\n") == "a b 1\n"
        assert normalize_line("a b 1\n\n") == "a b 1\n"
        assert normalize_line("\n") == ""
