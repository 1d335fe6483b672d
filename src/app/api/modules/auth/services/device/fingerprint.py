"""Heuristic device descriptor for a raw client identifier (User-Agent).

Each table is evaluated top to bottom and the first matching rule wins, so
more specific tokens must precede generic ones. Matching is case-sensitive
against the tokens browsers actually emit.
"""

from dataclasses import dataclass

UNKNOWN_BROWSER = "Unknown Browser"
UNKNOWN_OS = "Unknown OS"
UNKNOWN_DEVICE = "Unknown Device"

DEVICE_MOBILE = "Mobile"
DEVICE_TABLET = "Tablet"
DEVICE_DESKTOP = "Desktop"


@dataclass(frozen=True, slots=True)
class Rule:
    result: str
    any_of: tuple[str, ...]
    none_of: tuple[str, ...] = ()

    def matches(self, raw: str) -> bool:
        return contains_any(raw, self.any_of) and not contains_any(raw, self.none_of)


OS_RULES: tuple[Rule, ...] = (
    Rule("Windows 10", ("Windows NT 10",)),
    Rule("Windows 11", ("Windows NT 11",)),
    Rule("Windows", ("Windows",)),
    Rule("Android", ("Android",)),
    Rule("iOS", ("iPhone", "iPad", "iPod", "iOS")),
    Rule("macOS", ("Mac OS X", "Mac")),
    Rule("Linux", ("Linux",)),
)

BROWSER_RULES: tuple[Rule, ...] = (
    Rule("Chrome", ("Chrome",), none_of=("Edg", "OPR", "Opera")),
    Rule("Firefox", ("Firefox",)),
    Rule("Safari", ("Safari",), none_of=("Chrome",)),
    Rule("Edge", ("Edg",)),
    Rule("Opera", ("Opera", "OPR")),
)

DEVICE_CLASS_RULES: tuple[Rule, ...] = (
    Rule(DEVICE_TABLET, ("iPad", "Tablet")),
    Rule(DEVICE_MOBILE, ("Mobile", "iPhone", "iPod")),
    # Android tablets omit the "Mobile" token.
    Rule(DEVICE_TABLET, ("Android",), none_of=("Mobile",)),
)


@dataclass(frozen=True, slots=True)
class DeviceDescriptor:
    browser: str
    os: str
    device_class: str
    display_name: str

    @property
    def label(self) -> str:
        return f"{self.browser} · {self.os}"


UNKNOWN_DESCRIPTOR = DeviceDescriptor(
    browser=UNKNOWN_BROWSER,
    os=UNKNOWN_OS,
    device_class=DEVICE_DESKTOP,
    display_name=UNKNOWN_DEVICE,
)


def contains_any(value: str, markers: tuple[str, ...]) -> bool:
    return any(marker in value for marker in markers)


def first_match(raw: str, rules: tuple[Rule, ...], default: str) -> str:
    for rule in rules:
        if rule.matches(raw):
            return rule.result
    return default


def compose_display_name(browser: str, os: str) -> str:
    return f"{browser} on {os}"


def parse_fingerprint(raw: str | None) -> DeviceDescriptor:
    if not raw or not raw.strip():
        return UNKNOWN_DESCRIPTOR

    browser = first_match(raw, BROWSER_RULES, UNKNOWN_BROWSER)
    os = first_match(raw, OS_RULES, UNKNOWN_OS)
    device_class = first_match(raw, DEVICE_CLASS_RULES, DEVICE_DESKTOP)
    return DeviceDescriptor(
        browser=browser,
        os=os,
        device_class=device_class,
        display_name=compose_display_name(browser, os),
    )


__all__ = (
    "BROWSER_RULES",
    "DEVICE_CLASS_RULES",
    "DEVICE_DESKTOP",
    "DEVICE_MOBILE",
    "DEVICE_TABLET",
    "OS_RULES",
    "UNKNOWN_DESCRIPTOR",
    "DeviceDescriptor",
    "Rule",
    "compose_display_name",
    "contains_any",
    "first_match",
    "parse_fingerprint",
)
