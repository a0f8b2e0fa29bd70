"""Tests for system-account authentication."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, patch

import pytest

from switchboard import auth
from switchboard.runner import TimedCommandResult

_OK = TimedCommandResult(success=True, stdout="", stderr="", exit_code=0)
_REJECTED = TimedCommandResult(success=False, stdout="", stderr="", exit_code=1)
_TIMED_OUT = TimedCommandResult(
    success=False, stdout="", stderr="", exit_code=None, timed_out=True
)


def _make_strategy(name: str, result: TimedCommandResult) -> AsyncMock:
    strategy = AsyncMock()
    strategy.name = name
    strategy.attempt = AsyncMock(return_value=result)
    return strategy


# ------------------------------------------------------------------ #
# authenticate
# ------------------------------------------------------------------ #


class TestAuthenticate:
    async def test_first_success_short_circuits(self) -> None:
        first = _make_strategy("su", _OK)
        second = _make_strategy("sudo", _OK)

        assert await auth.authenticate("alice", "pw", [first, second]) is True
        first.attempt.assert_awaited_once_with("alice", "pw")
        second.attempt.assert_not_awaited()

    async def test_falls_through_in_order(self) -> None:
        first = _make_strategy("su", _REJECTED)
        second = _make_strategy("sudo", _OK)
        assert await auth.authenticate("alice", "pw", [first, second]) is True
        second.attempt.assert_awaited_once()

    async def test_all_fail(self) -> None:
        strategies = [_make_strategy("su", _REJECTED), _make_strategy("sudo", _TIMED_OUT)]
        assert await auth.authenticate("alice", "pw", strategies) is False

    @pytest.mark.parametrize("username", ["", "Root", "../etc", "a b", "-rf", "x" * 40])
    async def test_invalid_username_never_spawns(self, username: str) -> None:
        strategy = _make_strategy("su", _OK)
        assert await auth.authenticate(username, "pw", [strategy]) is False
        strategy.attempt.assert_not_awaited()

    async def test_empty_password_rejected(self) -> None:
        strategy = _make_strategy("su", _OK)
        assert await auth.authenticate("alice", "", [strategy]) is False
        strategy.attempt.assert_not_awaited()

    async def test_timeout_logs_like_wrong_password(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="switchboard.auth"):
            await auth.authenticate("alice", "pw", [_make_strategy("su", _REJECTED)])
        rejected = [r.getMessage() for r in caplog.records]
        caplog.clear()

        with caplog.at_level(logging.DEBUG, logger="switchboard.auth"):
            await auth.authenticate("alice", "pw", [_make_strategy("su", _TIMED_OUT)])
        timed_out = [r.getMessage() for r in caplog.records]

        assert rejected == timed_out
        assert all("pw" not in m.split() for m in rejected)


# ------------------------------------------------------------------ #
# Strategies
# ------------------------------------------------------------------ #


class TestStrategies:
    async def test_su_command(self) -> None:
        with patch("switchboard.auth.run_timed", AsyncMock(return_value=_OK)) as run:
            result = await auth.SuStrategy(timeout=2.0).attempt("alice", "secret")
        assert result is _OK
        run.assert_awaited_once_with(
            "su", ["alice", "-c", "exit"], stdin_payload="secret", timeout=2.0
        )

    async def test_sudo_command(self) -> None:
        with patch("switchboard.auth.run_timed", AsyncMock(return_value=_OK)) as run:
            await auth.SudoStrategy().attempt("alice", "secret")
        run.assert_awaited_once_with(
            "sudo", ["-S", "-u", "alice", "true"], stdin_payload="secret", timeout=5.0
        )

    def test_build_strategies_order(self) -> None:
        strategies = auth.build_strategies(["sudo", "su"], timeout=1.5)
        assert [s.name for s in strategies] == ["sudo", "su"]
        assert isinstance(strategies[1], auth.SuStrategy)
        assert strategies[1].timeout == 1.5

    def test_build_strategies_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown auth strategy 'login'"):
            auth.build_strategies(["login"])

    async def test_default_strategy_is_su(self) -> None:
        with patch("switchboard.auth.run_timed", AsyncMock(return_value=_REJECTED)) as run:
            assert await auth.authenticate("alice", "pw") is False
        assert run.await_args.args[0] == "su"


# ------------------------------------------------------------------ #
# Availability and user info
# ------------------------------------------------------------------ #


class TestUserInfo:
    def test_is_available(self) -> None:
        with patch("switchboard.auth.shutil.which", return_value="/bin/su"):
            assert auth.is_available() is True
        with patch("switchboard.auth.shutil.which", return_value=None):
            assert auth.is_available() is False

    def test_parse_passwd_line(self) -> None:
        info = auth.parse_passwd_line(
            "alice:x:1000:1000:Alice Smith,,,:/home/alice:/bin/bash\n"
        )
        assert info == auth.UserInfo(
            username="alice",
            uid="1000",
            gid="1000",
            name="Alice Smith",
            home="/home/alice",
            shell="/bin/bash",
        )

    def test_parse_passwd_line_garbage(self) -> None:
        assert auth.parse_passwd_line("not-a-passwd-line") is None

    async def test_get_user_info(self) -> None:
        result = TimedCommandResult(
            success=True,
            stdout="bob:x:1001:1001::/home/bob:/bin/sh\n",
            stderr="",
            exit_code=0,
        )
        with patch("switchboard.auth.run_timed", AsyncMock(return_value=result)) as run:
            info = await auth.get_user_info("bob")
        run.assert_awaited_once_with("getent", ["passwd", "bob"], timeout=5.0)
        assert info is not None
        assert info.to_dict()["home"] == "/home/bob"

    async def test_get_user_info_unknown_user(self) -> None:
        with patch("switchboard.auth.run_timed", AsyncMock(return_value=_REJECTED)):
            assert await auth.get_user_info("ghost") is None
