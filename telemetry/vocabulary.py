#
# free-text note vocabularies.
#
# Field notes are the only evidence left when a reading has no usable bearing/distance, and they also flag readings
# that should not be trusted for timing. Both uses go through a finite, versioned list of patterns so the phrases can
# be reviewed and extended without touching the classification or dwell code.
#
# Matching is case-insensitive and collapses runs of whitespace. Null notes never match.
#

import re
from dataclasses import dataclass, field

import pandas as pd

KINDS = ('exact', 'substring', 'regex')


def _normalize(note:str) -> str:
    return ' '.join(note.lower().split())


@dataclass(frozen=True)
class NotePattern:
    kind: str
    text: str

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"unknown pattern kind {self.kind!r}, expected one of {KINDS}")
        if self.kind == 'regex':
            re.compile(self.text)

    def matches(self, note) -> bool:
        if note is None or pd.isna(note):
            return False
        note = _normalize(str(note))
        if self.kind == 'exact':
            return note == _normalize(self.text)
        if self.kind == 'substring':
            return _normalize(self.text) in note
        return re.search(self.text, note, flags=re.IGNORECASE) is not None


@dataclass(frozen=True)
class Vocabulary:
    name: str
    version: int
    patterns: tuple = field(default_factory=tuple)

    def matches(self, note) -> bool:
        return any(p.matches(note) for p in self.patterns)

    def any_match(self, notes:pd.Series) -> pd.Series:
        return notes.map(self.matches).astype(bool)


def from_config(name:str, version:int, entries:list) -> Vocabulary:
    return Vocabulary(name, version, tuple(NotePattern(e['kind'], e['text']) for e in entries))


# Positive evidence that the bird was inside the patch when no coordinates could be derived. Notes matching
# NOT_IN_AREA below are excluded first.
IN_AREA = Vocabulary('in_area', 3, (
    NotePattern('substring', 'in patch'),
    NotePattern('substring', 'inside patch'),
    NotePattern('substring', 'in the patch'),
    NotePattern('substring', 'at focal heliconia'),
    NotePattern('substring', 'on camera'),
    NotePattern('regex', r'\b(seen|perched) (at|on|in) (the )?(focal )?(plant|heliconia|patch)\b'),
    NotePattern('exact', 'in'),
))

# Readings that cannot carry a dwell estimate: departure is set to arrival before estimating.
UNRELIABLE = Vocabulary('unreliable', 2, (
    NotePattern('substring', 'lost signal'),
    NotePattern('substring', 'signal lost'),
    NotePattern('substring', 'no signal'),
    NotePattern('substring', 'interference'),
    NotePattern('substring', 'left patch'),
    NotePattern('substring', 'left the patch'),
    NotePattern('regex', r'\bflew (off|out|away)\b'),
))

# Negated or contrary evidence. Checked before IN_AREA: "not in patch" must never count as in.
NOT_IN_AREA = Vocabulary('not_in_area', 1, (
    NotePattern('regex', r'\b(not|never|no longer) (seen |heard |perched )?(in|inside|at|on)\b'),
    NotePattern('substring', 'outside'),
    NotePattern('substring', 'out of patch'),
    NotePattern('substring', 'out of the patch'),
    NotePattern('substring', 'not seen'),
))
