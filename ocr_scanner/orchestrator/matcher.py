import re
from typing import Iterable, Optional, Pattern, Union

IP_ADDRESS_PATTERN = (
    r"(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)(\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)){3}"
)


class PatternMatcher:
    """First-match search of a compiled pattern over recognized text lines.

    Only the full match text is returned; capture groups are ignored and
    later matches in the same line are not considered. Empty matches are
    skipped so a match is always non-empty text.
    """

    def __init__(self, pattern: Union[str, Pattern[str]] = IP_ADDRESS_PATTERN, flags: int = 0):
        if isinstance(pattern, str):
            pattern = re.compile(pattern, flags)
        self.pattern = pattern

    def find_first_match(self, lines: Iterable[Optional[str]]) -> Optional[str]:
        for line in lines:
            if not isinstance(line, str):
                continue
            for m in self.pattern.finditer(line):
                if m.group(0):
                    return m.group(0)
        return None

    def __repr__(self):
        return f"PatternMatcher({self.pattern.pattern!r})"
