"""
Recurrence rules for reminders.

Rules are RFC 5545 RRULE text, e.g. ``FREQ=DAILY;INTERVAL=1`` or
``FREQ=WEEKLY;BYDAY=MO,WE;COUNT=10``. A rule may carry its own start instant,
either as a ``DTSTART:`` line in front of an ``RRULE:`` line or as an inline
``DTSTART=`` part (optionally zoned by ``TZID=``). Rules without one are
anchored at the reminder's original trigger time. ``FREQ=NONE`` marks a one-shot reminder.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple
import re

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.rrule import rrule, rrulestr

from petcare.utils.timezone import to_utc_aware


NO_RECURRENCE = "FREQ=NONE"

FREQUENCIES = ("YEARLY", "MONTHLY", "WEEKLY", "DAILY", "HOURLY", "MINUTELY", "SECONDLY")

# "DTSTART;TZID=Europe/Madrid" or "RRULE", as opposed to "FREQ=DAILY;..."
_PROPERTY_NAME_RE = re.compile(r"^([A-Za-z]+)((?:;[A-Za-z-]+=[^;:]*)*)$")


class RecurrenceParseError(ValueError):
    """Raised when a recurrence rule cannot be turned into a schedule."""


def is_no_recurrence(rule_text: Optional[str]) -> bool:
    return (rule_text or "").upper() == NO_RECURRENCE


def has_embedded_start(rule_text: str) -> bool:
    return "DTSTART" in rule_text.upper()


@dataclass(frozen=True)
class RecurrenceSpec:
    """Parsed recurrence rule anchored at ``dtstart``."""
    frequency: str
    dtstart: datetime
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None
    by_parts: Dict[str, str] = field(default_factory=dict)
    anchored_by_rule_text: bool = False

    @classmethod
    def anchored_by_rule(cls, rule_text: str) -> "RecurrenceSpec":
        """Build from rule text that carries its own DTSTART; the first RRULE wins."""
        dtstart, rule_bodies = _split_rule_text(rule_text)
        if dtstart is None:
            raise RecurrenceParseError(f"Rule has no DTSTART: {rule_text!r}")
        if not rule_bodies:
            raise RecurrenceParseError(f"Rule set has no recurrence rule: {rule_text!r}")
        return cls._from_parts(rule_bodies[0], dtstart, anchored_by_rule_text=True)

    @classmethod
    def anchored_by_trigger(cls, rule_text: str, trigger_datetime: datetime) -> "RecurrenceSpec":
        """Build from a bare RRULE, starting at the reminder's original trigger time."""
        if trigger_datetime is None:
            raise RecurrenceParseError("A trigger datetime is required to anchor the rule")
        _, rule_bodies = _split_rule_text(rule_text)
        if not rule_bodies:
            raise RecurrenceParseError(f"No recurrence rule found in {rule_text!r}")
        return cls._from_parts(rule_bodies[0], to_utc_aware(trigger_datetime))

    @classmethod
    def _from_parts(cls, body: str, dtstart: datetime, anchored_by_rule_text: bool = False) -> "RecurrenceSpec":
        parts = _parse_rule_parts(body)
        # Inline DTSTART= and TZID= were consumed by _split_rule_text
        parts.pop("DTSTART", None)
        parts.pop("TZID", None)

        frequency = parts.pop("FREQ", "").upper()
        if frequency not in FREQUENCIES:
            raise RecurrenceParseError(f"Unsupported frequency {frequency or '<missing>'!r}")

        interval = _positive_int(parts.pop("INTERVAL", "1"), "INTERVAL")
        count = _positive_int(parts.pop("COUNT"), "COUNT") if "COUNT" in parts else None
        until = _parse_instant(parts.pop("UNTIL"), "UNTIL") if "UNTIL" in parts else None

        spec = cls(
            frequency=frequency,
            dtstart=dtstart,
            interval=interval,
            count=count,
            until=until,
            by_parts=parts,
            anchored_by_rule_text=anchored_by_rule_text,
        )
        # Fail at parse time, not during rollover
        spec.to_rrule()
        return spec

    def to_rrule(self) -> rrule:
        rule_parts = [f"FREQ={self.frequency}", f"INTERVAL={self.interval}"]
        if self.count is not None:
            rule_parts.append(f"COUNT={self.count}")
        rule_parts.extend(f"{name}={value}" for name, value in self.by_parts.items())
        try:
            rule = rrulestr(";".join(rule_parts), dtstart=self.dtstart)
            if self.until is not None:
                rule = rule.replace(until=self.until)
        except (ValueError, TypeError) as e:
            raise RecurrenceParseError(f"Invalid recurrence rule {';'.join(rule_parts)!r}: {e}") from e
        return rule

    def next_after(self, instant: datetime) -> Optional[datetime]:
        """First occurrence strictly after ``instant`` (UTC), or None once exhausted."""
        nxt = self.to_rrule().after(to_utc_aware(instant), inc=False)
        return to_utc_aware(nxt) if nxt is not None else None


def parse_recurrence(rule_text: str, trigger_datetime: Optional[datetime]) -> RecurrenceSpec:
    """Pick the anchoring strategy for ``rule_text`` and parse it."""
    if not rule_text or not rule_text.strip():
        raise RecurrenceParseError("Empty recurrence rule")
    if is_no_recurrence(rule_text):
        raise RecurrenceParseError(f"{NO_RECURRENCE} has no occurrences to evaluate")
    if has_embedded_start(rule_text):
        return RecurrenceSpec.anchored_by_rule(rule_text)
    return RecurrenceSpec.anchored_by_trigger(rule_text, trigger_datetime)


def validate_rule(rule_text: str, trigger_datetime: datetime) -> None:
    """Raise RecurrenceParseError unless the rule is FREQ=NONE or parses."""
    if is_no_recurrence(rule_text):
        return
    parse_recurrence(rule_text, trigger_datetime)


def _split_rule_text(rule_text: str) -> Tuple[Optional[datetime], List[str]]:
    """Split rule text into (DTSTART, [rule bodies]).

    Accepts both iCalendar content lines and a single bare rule line.
    EXDATE/RDATE/EXRULE lines are ignored.
    """
    dtstart: Optional[datetime] = None
    bodies: List[str] = []

    for raw_line in rule_text.replace("\r\n", "\n").split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        name, sep, value = line.partition(":")
        match = _PROPERTY_NAME_RE.match(name) if sep else None
        if match:
            prop = match.group(1).upper()
            if prop == "DTSTART":
                dtstart = _parse_dtstart(match.group(2), value)
            elif prop == "RRULE":
                inline_start = _parse_inline_start(value)
                if inline_start is not None:
                    dtstart = inline_start
                bodies.append(value)
            continue

        # Bare rule line, possibly with an inline DTSTART= part
        inline_start = _parse_inline_start(line)
        if inline_start is not None:
            dtstart = inline_start
        bodies.append(line)

    return dtstart, bodies


def _parse_inline_start(body: str) -> Optional[datetime]:
    """DTSTART= part of a rule body, zoned by a TZID= part when it has one."""
    parts = _parse_rule_parts(body)
    value = parts.get("DTSTART")
    if value is None:
        return None
    tzid = parts.get("TZID")
    return _parse_dtstart(f"TZID={tzid}" if tzid else "", value)


def _parse_rule_parts(body: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for chunk in body.strip().strip(";").split(";"):
        if not chunk:
            continue
        name, sep, value = chunk.partition("=")
        if not sep or not name.strip():
            raise RecurrenceParseError(f"Malformed rule part {chunk!r}")
        parts[name.strip().upper()] = value.strip()
    return parts


def _parse_dtstart(params: str, value: str) -> datetime:
    tzid = None
    for param in params.strip(";").split(";"):
        key, _, param_value = param.partition("=")
        if key.upper() == "TZID":
            tzid = param_value
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        raise RecurrenceParseError(f"Invalid DTSTART {value!r}: {e}") from e
    if parsed.tzinfo is None and tzid:
        zone = tz.gettz(tzid)
        if zone is None:
            raise RecurrenceParseError(f"Unknown TZID {tzid!r}")
        # Keep the zone so occurrences follow local wall-clock time
        return parsed.replace(tzinfo=zone)
    return to_utc_aware(parsed)


def _parse_instant(value: str, name: str) -> datetime:
    try:
        return to_utc_aware(date_parser.parse(value))
    except (ValueError, OverflowError) as e:
        raise RecurrenceParseError(f"Invalid {name} {value!r}: {e}") from e


def _positive_int(value: str, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise RecurrenceParseError(f"{name} must be an integer, got {value!r}") from e
    if number < 1:
        raise RecurrenceParseError(f"{name} must be positive, got {number}")
    return number
