"""
Feeder settings line codec: decode M620 responses, encode M620 commands.

Line format (whitespace separated, any token order, last repeat wins):
  M620 N<index> [A<f>] [B<f>] [C<f>] [F<f>] [U<f>] [V<f>] [W<f>] [X<0|1>]

Example controller output:
  M620 N1 A135 B107.5 C80 F2 U300 V490.2 W980.4 X0
"""

import re
from dataclasses import dataclass
from typing import Iterable, NamedTuple, List, Optional

SETTINGS_MARKER = "M620"
GET_ALL_SETTINGS = "M621"
INDEX_TAG = "N"

_settings_re = re.compile(SETTINGS_MARKER + r" (.*)")


# ── Errors ────────────────────────────────────────────────────────────

class DecodeError(ValueError):
    """A settings line could not be decoded. Nothing partial is returned."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class MalformedLineError(DecodeError):
    pass


class UnknownTagError(DecodeError):
    def __init__(self, tag: str, line: str = ""):
        super().__init__(f"unknown tag {tag!r}", line)
        self.tag = tag


class InvalidValueError(DecodeError):
    def __init__(self, tag: str, raw: str, line: str = ""):
        super().__init__(f"invalid value {raw!r} for tag {tag!r}", line)
        self.tag = tag
        self.raw = raw


class MissingFeederIndexError(DecodeError):
    pass


# ── Field table (canonical wire order) ────────────────────────────────

class SettingField(NamedTuple):
    name: str   # FeederSettings attribute
    tag: str    # single wire letter
    kind: str   # "float" or "flag"


SETTINGS_FIELDS: List[SettingField] = [
    SettingField("advanced_angle",      "A", "float"),
    SettingField("half_advanced_angle", "B", "float"),
    SettingField("retract_angle",       "C", "float"),
    SettingField("feed_length",         "F", "float"),
    SettingField("settle_time",         "U", "float"),
    SettingField("pwm_0",               "V", "float"),
    SettingField("pwm_180",             "W", "float"),
    SettingField("ignore_feedback_pin", "X", "flag"),
]

_FIELDS_BY_TAG = {f.tag: f for f in SETTINGS_FIELDS}


@dataclass
class FeederSettings:
    """Servo actuation parameters of one feeder. None = not specified."""
    advanced_angle: Optional[float] = None
    half_advanced_angle: Optional[float] = None
    retract_angle: Optional[float] = None
    feed_length: Optional[float] = None
    settle_time: Optional[float] = None
    pwm_0: Optional[float] = None
    pwm_180: Optional[float] = None
    ignore_feedback_pin: Optional[bool] = None


# ── Decode ────────────────────────────────────────────────────────────

_int_re = re.compile(r"[+-]?[0-9]+")
_float_re = re.compile(
    r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?)",
    re.IGNORECASE,
)


def is_settings_line(line: str) -> bool:
    """True when the line carries an M620 payload decode() would look at."""
    return _settings_re.search(line) is not None


def _parse_int(tag: str, raw: str, line: str) -> int:
    if not _int_re.fullmatch(raw):
        raise InvalidValueError(tag, raw, line)
    return int(raw)


def _parse_float(tag: str, raw: str, line: str) -> float:
    # float() alone would also take "1_5" and "nan"
    if not _float_re.fullmatch(raw):
        raise InvalidValueError(tag, raw, line)
    return float(raw)


def decode(line: str) -> tuple:
    """
    Decode one M620 line.
    Returns (feeder_index, FeederSettings). Raises a DecodeError subclass.
    """
    match = _settings_re.search(line)
    if not match:
        raise MalformedLineError(f"no {SETTINGS_MARKER} payload", line)

    settings = FeederSettings()
    index = None
    for token in match.group(1).split():
        tag, raw = token[0], token[1:]
        if tag == INDEX_TAG:
            index = _parse_int(tag, raw, line)
            if index < 0:
                raise InvalidValueError(tag, raw, line)
            continue

        f = _FIELDS_BY_TAG.get(tag)
        if f is None:
            raise UnknownTagError(tag, line)
        if f.kind == "flag":
            setattr(settings, f.name, _parse_int(tag, raw, line) != 0)
        else:
            setattr(settings, f.name, _parse_float(tag, raw, line))

    if index is None:
        raise MissingFeederIndexError(f"no {INDEX_TAG} tag", line)
    return index, settings


def parse_settings_dump(lines: Iterable[str]) -> dict:
    """
    Collect every M620 line of a multi-line listing (M621 output).
    Other lines (BoardAddr:n, ok, blanks) are skipped. Returns {index: FeederSettings}.
    """
    result = {}
    for line in lines:
        if not is_settings_line(line):
            continue
        index, settings = decode(line)
        result[index] = settings
    return result


# ── Encode ────────────────────────────────────────────────────────────

def format_number(value: float) -> str:
    """Integral values print without a fraction (135, not 135.0)."""
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def encode(index: int, settings: Optional[FeederSettings], skip_zero: bool = False) -> str:
    """
    Build the M620 command line for a feeder.

    Every field that is not None is emitted, in A,B,C,F,U,V,W,X order.
    skip_zero=True drops numeric fields equal to zero, for controllers that
    expect the legacy behaviour where zero meant "unchanged".
    settings=None returns "" (nothing to send).
    """
    if settings is None:
        return ""

    parts = [f"{SETTINGS_MARKER} {INDEX_TAG}{index}"]
    for f in SETTINGS_FIELDS:
        value = getattr(settings, f.name)
        if value is None:
            continue
        if f.kind == "flag":
            parts.append(f"{f.tag}{1 if value else 0}")
        elif skip_zero and value == 0:
            continue
        else:
            parts.append(f"{f.tag}{format_number(value)}")
    return " ".join(parts)


def build_get_all_settings() -> str:
    """Ask the controller to print the M620 line of every feeder."""
    return GET_ALL_SETTINGS
