"""
Ordered interview transcript with an in-place updated candidate line.
"""
import dataclasses
from datetime import datetime
from typing import List, Optional

from .models import Speaker, TranscriptEntry


def unescape_text(text: str) -> str:
    """Strip one leading and one trailing double quote and unescape ``\\"``."""
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text.replace('\\"', '"')


class TranscriptAssembler:
    """
    Append-only transcript, except that the last line may be rewritten while
    it is a candidate utterance still being transcribed.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[TranscriptEntry]:
        """Copies of all entries, oldest first."""
        return [dataclasses.replace(entry) for entry in self._entries]

    @property
    def last(self) -> Optional[TranscriptEntry]:
        if not self._entries:
            return None
        return dataclasses.replace(self._entries[-1])

    def append_final(self, speaker: Speaker, text: str) -> TranscriptEntry:
        entry = TranscriptEntry(speaker=speaker, text=unescape_text(text))
        self._entries.append(entry)
        return dataclasses.replace(entry)

    def merge_candidate_update(self, text: str) -> TranscriptEntry:
        """Rewrite the open candidate line, or open a new one after any other speaker."""
        text = unescape_text(text)
        if self._entries and self._entries[-1].speaker is Speaker.CANDIDATE:
            entry = self._entries[-1]
            entry.text = text
            entry.timestamp = datetime.now()
        else:
            entry = TranscriptEntry(speaker=Speaker.CANDIDATE, text=text)
            self._entries.append(entry)
        return dataclasses.replace(entry)

    def count(self, speaker: Speaker) -> int:
        return sum(1 for entry in self._entries if entry.speaker is speaker)
