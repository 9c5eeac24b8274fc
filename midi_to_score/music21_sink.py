"""music21 implementation of the score sink.

Each staff of the layout becomes one `music21.stream.Part`; the two staves
of a piano part are joined by a brace. Measures are created up front from
the layout's measure spans and every inserted element is placed in a
`Voice` of the measure containing its tick.
"""

import logging

from music21 import chord as m21chord
from music21 import clef, instrument, key, meter, note, stream, tempo
from music21 import duration as m21duration
from music21 import layout as m21layout
from music21 import metadata as m21metadata
from music21 import tie as m21tie

from midi_to_score.models import (
    NotatedChord,
    NotatedRest,
    Note,
    ScoreLayout,
    StemDirection,
    Tie,
)
from midi_to_score.timesig import MeasureSpan

logger = logging.getLogger(__name__)

CLEFS = {
    "treble": clef.TrebleClef,
    "bass": clef.BassClef,
    "percussion": clef.PercussionClef,
}

# Contributor roles for text fields without a dedicated Metadata property
CONTRIBUTOR_ROLES = {
    "translator": "translator",
    "poet": "lyricist",
}


class Music21Score:
    """Score sink building a `music21.stream.Score`.

    Attributes:
        score: The score being built.
        layout: Layout received in `prepare`.
    """

    def __init__(self):
        self.score = stream.Score()
        self.layout: ScoreLayout | None = None
        self._parts: list[stream.Part] = []
        self._measures: list[list[stream.Measure]] = []
        self._notes: list[dict[int, note.Note]] = []
        self._onsets: list[dict[int, note.GeneralNote]] = []

    def _offset(self, tick: int) -> float:
        return tick / self.layout.division

    def prepare(self, layout: ScoreLayout) -> None:
        """Create one part per staff with all measures of the layout."""
        self.layout = layout
        for part_plan in layout.parts:
            staff_parts = []
            for staff in part_plan.staves:
                part = stream.Part()
                part.id = f"P{staff.index + 1}"
                part.partName = part_plan.name

                inst = instrument.Instrument(instrumentName=part_plan.name)
                inst.midiProgram = part_plan.program
                inst.midiChannel = part_plan.channel
                part.insert(0, inst)

                measures = []
                for span in layout.measures:
                    measure = stream.Measure(number=span.index + 1)
                    part.insert(self._offset(span.start), measure)
                    measures.append(measure)
                if measures:
                    measures[0].insert(0, CLEFS.get(staff.clef, clef.TrebleClef)())

                self.score.insert(0, part)
                self._parts.append(part)
                self._measures.append(measures)
                self._notes.append({})
                self._onsets.append({})
                staff_parts.append(part)

            if len(staff_parts) > 1:
                group = m21layout.StaffGroup(
                    staff_parts, name=part_plan.name, symbol="brace"
                )
                self.score.insert(0, group)

        logger.debug(
            f"Prepared {len(self._parts)} staves with {len(layout.measures)} measures"
        )

    def measure_at(self, tick: int) -> MeasureSpan | None:
        return self.layout.measure_at(tick) if self.layout else None

    def _voice(self, staff: int, span: MeasureSpan, voice: int) -> stream.Voice:
        measure = self._measures[staff][span.index]
        voice_id = str(voice + 1)
        for existing in measure.voices:
            if existing.id == voice_id:
                return existing
        new_voice = stream.Voice()
        new_voice.id = voice_id
        measure.insert(0, new_voice)
        return new_voice

    def _place(self, staff: int, tick: int, voice: int, element: note.GeneralNote) -> bool:
        span = self.measure_at(tick)
        if span is None:
            logger.warning(f"No measure at tick {tick} on staff {staff}")
            return False
        self._voice(staff, span, voice).insert(self._offset(tick - span.start), element)
        return True

    def add_chord(self, staff: int, chord: NotatedChord, notes: list[Note]) -> None:
        written = m21duration.Duration(type=chord.duration.type, dots=chord.duration.dots)
        members = []
        for n in notes:
            member = note.Note(n.pitch)
            member.volume.velocity = n.velocity
            members.append(member)

        if len(members) == 1:
            element = members[0]
            element.duration = written
        else:
            element = m21chord.Chord(members)
            element.duration = written
            members = list(element.notes)

        if chord.stem != StemDirection.AUTO:
            element.stemDirection = chord.stem.value

        if not self._place(staff, chord.tick, chord.voice, element):
            return
        for note_id, member in zip(chord.note_ids, members):
            self._notes[staff][note_id] = member
        self._onsets[staff].setdefault(chord.tick, element)

    def add_rest(self, staff: int, rest: NotatedRest) -> None:
        if rest.is_measure_rest:
            element = note.Rest(quarterLength=self._offset(rest.ticks))
            element.fullMeasure = True
        else:
            element = note.Rest()
            element.duration = m21duration.Duration(
                type=rest.duration.type, dots=rest.duration.dots
            )
        self._place(staff, rest.tick, rest.voice, element)

    @staticmethod
    def _link(member: note.Note, role: str) -> None:
        if member.tie is None:
            member.tie = m21tie.Tie(role)
        elif member.tie.type != role:
            member.tie = m21tie.Tie("continue")

    def add_tie(self, staff: int, tie: Tie) -> None:
        start = self._notes[staff].get(tie.start)
        end = self._notes[staff].get(tie.end)
        if start is None or end is None:
            logger.warning(f"Tie {tie.start}->{tie.end} refers to a missing note")
            return
        self._link(start, "start")
        self._link(end, "stop")

    def _insert_at(self, staff: int, tick: int, element) -> None:
        span = self.measure_at(tick)
        if span is None:
            logger.debug(f"Dropping {type(element).__name__} past the end at {tick}")
            return
        self._measures[staff][span.index].insert(self._offset(tick - span.start), element)

    def add_key_signature(self, staff: int, tick: int, accidentals: int) -> None:
        self._insert_at(staff, tick, key.KeySignature(accidentals))

    def add_time_signature(
        self, staff: int, tick: int, numerator: int, denominator: int
    ) -> None:
        self._insert_at(staff, tick, meter.TimeSignature(f"{numerator}/{denominator}"))

    def set_tempo(self, tick: int, bpm: float) -> None:
        if not self._parts:
            return
        self._insert_at(0, tick, tempo.MetronomeMark(number=round(bpm, 2)))

    def set_metadata(self, field: str, text: str) -> None:
        if self.score.metadata is None:
            self.score.metadata = m21metadata.Metadata()
        md = self.score.metadata
        if field == "title":
            md.title = text
        elif field == "subtitle":
            md.movementName = text
        elif field == "composer":
            md.composer = text
        elif field == "copyright":
            md.copyright = text
        elif field in CONTRIBUTOR_ROLES:
            md.addContributor(
                m21metadata.Contributor(role=CONTRIBUTOR_ROLES[field], name=text)
            )
        else:
            logger.debug(f"Ignoring metadata field {field}")

    def add_lyric(self, staff: int, tick: int, text: str) -> None:
        element = self._onsets[staff].get(tick)
        if element is None:
            logger.debug(f"No chord at tick {tick} for lyric {text!r}")
            return
        element.addLyric(text)

    def write(self, fmt: str = "musicxml", fp=None):
        """Write the score with music21's exporters and return the output path."""
        return self.score.write(fmt, fp=fp)
