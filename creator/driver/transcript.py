"""
Transcript normalization.

Raw stdout chunks from aider are decoded, stripped of terminal control
sequences, and appended to the transcript buffer of the current turn.
"""

import codecs
import re

# CSI sequences: ESC [ parameters final-byte. Covers cursor movement
# (A-H), erase (J, K), scrolling (S, T), modes (h, l) and colours (m).
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-HJKSTfhlmnsu]")

# An escape sequence cut off at the end of a chunk
_PARTIAL_ESCAPE_RE = re.compile(r"\x1b(\[[0-9;?]*)?$")


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences, keeping every line break."""
    return ANSI_ESCAPE_RE.sub("", text)


class TranscriptBuffer:
    """
    Append-only transcript of one turn plus a read cursor.

    The supervisor's stdout reader is the only writer; the streaming
    adapter is the only reader. ``0 <= cursor <= len(text)`` always holds.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.text = ""
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.text)

    def feed(self, data: bytes) -> str:
        """
        Decode, clean and append a raw output chunk.

        Multi-byte characters and escape sequences split across chunks are
        held back until the rest arrives.

        Returns:
            The cleaned text that was appended
        """
        text = self._pending + self._decoder.decode(data)
        self._pending = ""

        partial = _PARTIAL_ESCAPE_RE.search(text)
        if partial:
            self._pending = text[partial.start():]
            text = text[: partial.start()]

        cleaned = strip_ansi(text)
        self.text += cleaned
        return cleaned

    def append(self, text: str) -> None:
        """Append already-decoded text (cleaned the same way)."""
        self.text += strip_ansi(text)

    def take_new(self) -> str:
        """Return everything after the cursor and move the cursor to the end."""
        new_output = self.text[self.cursor:]
        self.cursor = len(self.text)
        return new_output

    def reset(self) -> None:
        """Empty the buffer and rewind the cursor."""
        self.text = ""
        self.cursor = 0
        self._pending = ""
        self._decoder.reset()
