import re
from typing import Iterable, List, Optional, Pattern, Union

from loguru import logger


# plain shortcodes like "VM-HDFCBK" or "AXISBK" are compared exactly
_PLAIN_RE = re.compile(r"^[A-Za-z0-9\-]+$")


def _compile(pattern: str) -> Union[str, Pattern[str]]:
    p = pattern.strip()
    if _PLAIN_RE.match(p):
        return p.lower()
    return re.compile(p, re.IGNORECASE)


class SenderFilter:
    """
    Gate on the SMS source address, run before any extraction work.
    An empty pattern set accepts everything; a set whose patterns are all
    invalid accepts nothing.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None) -> None:
        configured = list(patterns or [])
        self._closed = False
        self._patterns: List[Union[str, Pattern[str]]] = []
        for p in configured:
            try:
                self._patterns.append(_compile(p))
            except re.error as e:
                logger.warning("Ignoring invalid sender pattern={!r} err={}", p, str(e))
        if configured and not self._patterns:
            logger.error("No valid sender pattern in {}: rejecting every sender", configured)
            self._closed = True

    def accept(self, address: str) -> bool:
        if not self._patterns:
            return not self._closed
        addr = address or ""
        for p in self._patterns:
            if isinstance(p, str):
                if addr.lower() == p:
                    return True
            elif p.search(addr):
                return True
        return False
