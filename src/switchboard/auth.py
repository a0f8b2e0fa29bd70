"""System-account authentication via short-lived ``su``/``sudo`` checks."""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from switchboard.constants import DEFAULT_AUTH_TIMEOUT
from switchboard.runner import TimedCommandResult, run_timed

logger = logging.getLogger(__name__)

#: POSIX-ish login names.  Anything else never reaches a subprocess.
_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_.-]*$")
_MAX_USERNAME_LEN = 32

#: Commands whose presence makes system auth usable at all.
_REQUIRED_COMMANDS = ("su", "sudo")


class AuthStrategy(Protocol):
    """One way of checking a username/password pair."""

    name: str

    async def attempt(self, username: str, password: str) -> TimedCommandResult: ...


class SuStrategy:
    """``su USER -c exit`` with the password on stdin."""

    name = "su"

    def __init__(self, timeout: float = DEFAULT_AUTH_TIMEOUT) -> None:
        self.timeout = timeout

    async def attempt(self, username: str, password: str) -> TimedCommandResult:
        return await run_timed(
            "su", [username, "-c", "exit"], stdin_payload=password, timeout=self.timeout
        )


class SudoStrategy:
    """``sudo -S -u USER true`` with the password on stdin."""

    name = "sudo"

    def __init__(self, timeout: float = DEFAULT_AUTH_TIMEOUT) -> None:
        self.timeout = timeout

    async def attempt(self, username: str, password: str) -> TimedCommandResult:
        return await run_timed(
            "sudo",
            ["-S", "-u", username, "true"],
            stdin_payload=password,
            timeout=self.timeout,
        )


_STRATEGIES: dict[str, type[SuStrategy] | type[SudoStrategy]] = {
    "su": SuStrategy,
    "sudo": SudoStrategy,
}


def build_strategies(
    names: Iterable[str], timeout: float = DEFAULT_AUTH_TIMEOUT
) -> list[AuthStrategy]:
    """Instantiate strategies by name, preserving order."""
    strategies: list[AuthStrategy] = []
    for name in names:
        try:
            strategies.append(_STRATEGIES[name](timeout))
        except KeyError:
            valid = ", ".join(sorted(_STRATEGIES))
            msg = f"Unknown auth strategy '{name}'. Valid: {valid}"
            raise ValueError(msg) from None
    return strategies


def is_valid_username(username: str) -> bool:
    return (
        0 < len(username) <= _MAX_USERNAME_LEN
        and _USERNAME_RE.match(username) is not None
    )


async def authenticate(
    username: str,
    password: str,
    strategies: Sequence[AuthStrategy] | None = None,
) -> bool:
    """Try each strategy in order; ``True`` on the first success.

    A timed-out attempt counts as a failure and is logged exactly like a
    rejected password.
    """
    if not is_valid_username(username) or not password:
        logger.warning("authentication rejected: invalid username or empty password")
        return False

    if strategies is None:
        strategies = [SuStrategy()]

    for strategy in strategies:
        result = await strategy.attempt(username, password)
        if result.success:
            logger.info("authentication succeeded for %s via %s", username, strategy.name)
            return True
        logger.debug("authentication via %s failed for %s", strategy.name, username)

    logger.warning("authentication failed for %s", username)
    return False


def is_available() -> bool:
    """True if at least one of the auth commands is on ``PATH``."""
    return any(shutil.which(cmd) is not None for cmd in _REQUIRED_COMMANDS)


@dataclass(frozen=True)
class UserInfo:
    username: str
    uid: str
    gid: str
    name: str
    home: str
    shell: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "uid": self.uid,
            "gid": self.gid,
            "name": self.name,
            "home": self.home,
            "shell": self.shell,
        }


def parse_passwd_line(line: str) -> UserInfo | None:
    """Parse one ``/etc/passwd``-format line."""
    parts = line.strip().split(":")
    if len(parts) < 7 or not parts[0]:
        return None
    return UserInfo(
        username=parts[0],
        uid=parts[2],
        gid=parts[3],
        name=parts[4].split(",", 1)[0],
        home=parts[5],
        shell=parts[6],
    )


async def get_user_info(
    username: str, timeout: float = DEFAULT_AUTH_TIMEOUT
) -> UserInfo | None:
    """Look *username* up with ``getent passwd``."""
    if not is_valid_username(username):
        return None
    result = await run_timed("getent", ["passwd", username], timeout=timeout)
    if not result.success or not result.stdout.strip():
        return None
    return parse_passwd_line(result.stdout.splitlines()[0])
