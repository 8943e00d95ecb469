"""Levelled logging with a process-wide default logger."""

from __future__ import annotations

import enum
import json
import re
import sys
import threading
from datetime import datetime
from typing import Any, Protocol, TextIO, runtime_checkable


class LogLevel(enum.IntEnum):
    """Severity levels, lowest first."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


@runtime_checkable
class Logger(Protocol):
    """Anything that accepts printf-style messages at four levels."""

    def debug(self, msg: str, *args: Any) -> None: ...

    def info(self, msg: str, *args: Any) -> None: ...

    def warn(self, msg: str, *args: Any) -> None: ...

    def error(self, msg: str, *args: Any) -> None: ...


_lock = threading.Lock()
_level: LogLevel = LogLevel.INFO
_default_logger: StdLogger | None = None
_initialised = False

_VERB = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")
_MISSING = object()


def _value_str(arg: Any) -> str:
    if arg is None:
        return "<nil>"
    if isinstance(arg, bool):
        return "true" if arg else "false"
    return str(arg)


def _render(verb: str, arg: Any, precision: str | None) -> str:
    try:
        if verb in "vsw":
            return _value_str(arg)
        if verb == "d":
            if isinstance(arg, bool):
                raise TypeError
            return str(int(arg))
        if verb in "fF":
            digits = 6 if precision is None else int(precision)
            return f"{float(arg):.{digits}f}"
        if verb == "e":
            digits = 6 if precision is None else int(precision)
            return f"{float(arg):.{digits}e}"
        if verb == "g":
            return format(float(arg), "g") if precision is None else format(float(arg), f".{precision}g")
        if verb == "q":
            return json.dumps(_value_str(arg), ensure_ascii=False)
        if verb == "t":
            if not isinstance(arg, bool):
                raise TypeError
            return "true" if arg else "false"
        if verb == "x":
            if isinstance(arg, (bytes, bytearray)):
                return arg.hex()
            if isinstance(arg, str):
                return arg.encode().hex()
            return format(int(arg), "x")
        if verb == "T":
            return type(arg).__name__
    except (TypeError, ValueError):
        pass
    return f"%!{verb}({type(arg).__name__}={_value_str(arg)})"


def _sprintf(msg: str, args: tuple[Any, ...]) -> str:
    """Format ``msg`` using printf verbs such as %v, %d, %s, %q and %.2f."""
    remaining = iter(args)

    def replace(match: re.Match[str]) -> str:
        flags, width, precision, verb = match.groups()
        if verb == "%":
            return "%"
        arg = next(remaining, _MISSING)
        if arg is _MISSING:
            return f"%!{verb}(MISSING)"
        text = _render(verb, arg, precision)
        if width:
            size = int(width)
            if "-" in flags:
                text = text.ljust(size)
            elif "0" in flags and verb in "dfFeg":
                text = text.rjust(size, "0")
            else:
                text = text.rjust(size)
        return text

    out = _VERB.sub(replace, msg)
    extra = list(remaining)
    if extra:
        out += "%!(EXTRA " + ", ".join(f"{type(a).__name__}={_value_str(a)}" for a in extra) + ")"
    return out


class StdLogger:
    """Writes timestamped, prefixed lines to a text stream, honouring the global level."""

    _PREFIXES = {
        LogLevel.DEBUG: "DEBUG: ",
        LogLevel.INFO: "INFO:  ",
        LogLevel.WARN: "WARN:  ",
        LogLevel.ERROR: "ERROR: ",
    }

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out if out is not None else sys.stdout
        self._write_lock = threading.Lock()

    def _log(self, level: LogLevel, msg: str, args: tuple[Any, ...]) -> None:
        if _level > level:
            return
        stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
        line = f"{stamp} {self._PREFIXES[level]}{_sprintf(msg, args)}"
        if not line.endswith("\n"):
            line += "\n"
        with self._write_lock:
            self._out.write(line)

    def debug(self, msg: str, *args: Any) -> None:
        self._log(LogLevel.DEBUG, msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(LogLevel.INFO, msg, args)

    def warn(self, msg: str, *args: Any) -> None:
        self._log(LogLevel.WARN, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(LogLevel.ERROR, msg, args)


class NoopLogger:
    """A logger that writes nothing; it only counts the messages it dropped."""

    discarded: int = 0

    def _discard(self) -> None:
        self.discarded += 1

    def debug(self, msg: str, *args: Any) -> None:
        self._discard()

    def info(self, msg: str, *args: Any) -> None:
        self._discard()

    def warn(self, msg: str, *args: Any) -> None:
        self._discard()

    def error(self, msg: str, *args: Any) -> None:
        self._discard()


def init(level: LogLevel = LogLevel.INFO, out: TextIO | None = None) -> None:
    """Configure the default logger; only the first call has any effect."""
    global _level, _default_logger, _initialised
    with _lock:
        if _initialised:
            return
        _level = LogLevel(level)
        _default_logger = StdLogger(out if out is not None else sys.stdout)
        _initialised = True


def get() -> StdLogger:
    """Return the default logger, initialising it at the current level on stdout if needed."""
    if _default_logger is None:
        init(_level, sys.stdout)
    assert _default_logger is not None
    return _default_logger


def reset() -> None:
    """Forget the default logger so that the next init() applies again."""
    global _level, _default_logger, _initialised
    with _lock:
        _level = LogLevel.INFO
        _default_logger = None
        _initialised = False