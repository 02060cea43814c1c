"""Display pairing directory.

A display screen registers and receives a short code; an admin console
links that code to a tournament, which subscribes the display's
connection to the tournament channel.
"""

from __future__ import annotations

import logging
import secrets
import string

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class DisplayDirectory:
    """display code -> connection_id map."""

    def __init__(self, code_length: int = 6):
        self.code_length = code_length
        self._displays: dict[str, str] = {}

    def register(self, connection_id: str) -> str:
        """Issue a fresh unused code for `connection_id`."""
        code = self._generate()
        while code in self._displays:
            code = self._generate()
        self._displays[code] = connection_id
        logger.info(f"Display registered: {code} -> {connection_id}")
        return code

    def lookup(self, display_id: str) -> str | None:
        """Connection id behind a code (codes are case-insensitive)."""
        if not display_id:
            return None
        return self._displays.get(display_id.strip().upper())

    def forget_connection(self, connection_id: str) -> int:
        """Release every code held by a closed connection."""
        codes = [code for code, cid in self._displays.items() if cid == connection_id]
        for code in codes:
            del self._displays[code]
        if codes:
            logger.debug(f"Released display codes {codes} of {connection_id}")
        return len(codes)

    def __len__(self) -> int:
        return len(self._displays)

    def _generate(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self.code_length))
