"""Event ingestion: from a parsed MIDI file to per-track chord streams.

This module normalizes the file's resolution to the internal one, splits
every file track by channel, pairs note-on/note-off events into notes and
interprets meta events. Each note starts out as a single-note chord; the
chord builder merges them afterwards.
"""

import logging
from collections import defaultdict

import mido
from mido.midifiles.meta import KeySignatureError, MetaSpec_key_signature, add_meta_spec

from midi_to_score.meta import fold_meta, key_name_to_accidentals
from midi_to_score.models import (
    Chord,
    EventType,
    ImportedTrack,
    ImportParams,
    IngestResult,
    MetaKind,
    Note,
    RawEvent,
    Track,
    insert_chord,
)

logger = logging.getLogger(__name__)

DRUM_CHANNEL = 9

# mido meta message type -> (kind, meta type byte)
MIDO_META_KINDS = {
    "text": (MetaKind.TEXT, 0x01),
    "copyright": (MetaKind.COPYRIGHT, 0x02),
    "track_name": (MetaKind.TRACK_NAME, 0x03),
    "lyrics": (MetaKind.LYRIC, 0x05),
    # 0x09 doubles as the subtitle extension
    "device_name": (MetaKind.SUBTITLE, 0x09),
    "set_tempo": (MetaKind.TEMPO, 0x51),
    "time_signature": (MetaKind.TIME_SIGNATURE, 0x58),
    "key_signature": (MetaKind.KEY_SIGNATURE, 0x59),
}

# Extension meta type bytes mido does not know
EXTENSION_META_KINDS = {
    0x08: MetaKind.TITLE,
    0x0A: MetaKind.COMPOSER,
    0x0B: MetaKind.TRANSLATOR,
    0x0C: MetaKind.POET,
}


class LenientKeySignatureSpec(MetaSpec_key_signature):
    """Key signature decoding that keeps out-of-range values.

    mido rejects a key signature it has no name for and with it the whole
    file. Here the raw signed accidental count is stored in `key` instead, and
    the meta interpreter reports and drops it.
    """

    type = "key_signature"

    def decode(self, message, data):
        try:
            super().decode(message, data)
        except KeySignatureError:
            message.key = data[0] - 256 if data[0] > 127 else data[0]

    def encode(self, message):
        if isinstance(message.key, int):
            return [message.key & 0xFF, 0]
        return super().encode(message)

    def check(self, name, value):
        if not isinstance(value, int):
            super().check(name, value)


add_meta_spec(LenientKeySignatureSpec)


def normalize_tick(tick: int, source_division: int, division: int = 480) -> int:
    """Rescale a tick from the file's resolution to the internal one, rounding."""
    return (tick * division + source_division // 2) // source_division


def _meta_event(msg: mido.MetaMessage, tick: int, track: int) -> RawEvent | None:
    if msg.type == "end_of_track":
        return None
    if msg.type == "unknown_meta":
        kind = EXTENSION_META_KINDS.get(msg.type_byte, MetaKind.UNKNOWN)
        text = bytes(msg.data).decode("latin-1")
        return RawEvent(
            track=track,
            tick=tick,
            type=EventType.META,
            meta_kind=kind,
            meta_code=msg.type_byte,
            text=text,
        )

    kind, code = MIDO_META_KINDS.get(msg.type, (MetaKind.UNKNOWN, None))
    fields = {}
    if kind == MetaKind.TEMPO:
        fields["tempo_bpm"] = mido.tempo2bpm(msg.tempo)
    elif kind == MetaKind.KEY_SIGNATURE:
        if isinstance(msg.key, int):
            fields["key_accidentals"] = msg.key
        else:
            fields["key_accidentals"] = key_name_to_accidentals(msg.key)
    elif kind == MetaKind.TIME_SIGNATURE:
        fields["numerator"] = msg.numerator
        fields["denominator"] = msg.denominator
    elif kind in (MetaKind.TRACK_NAME, MetaKind.SUBTITLE):
        fields["text"] = msg.name
    elif kind != MetaKind.UNKNOWN:
        fields["text"] = msg.text
    return RawEvent(
        track=track,
        tick=tick,
        type=EventType.META,
        meta_kind=kind,
        meta_code=code,
        **fields,
    )


def to_raw_event(msg: mido.Message, tick: int, track: int = 0) -> RawEvent | None:
    """Convert one mido message to a RawEvent.

    Args:
        msg: The mido message.
        tick: Absolute position already normalized to internal ticks.
        track: Index of the channel-separated track.

    Returns:
        A RawEvent, or None for messages the importer does not use
        (controllers, pitch bend, sysex, end of track).
    """
    if msg.is_meta:
        return _meta_event(msg, tick, track)
    if msg.type == "note_on":
        kind = EventType.NOTE_ON if msg.velocity > 0 else EventType.NOTE_OFF
        return RawEvent(
            track=track,
            tick=tick,
            type=kind,
            channel=msg.channel,
            pitch=msg.note,
            velocity=msg.velocity,
        )
    if msg.type == "note_off":
        return RawEvent(
            track=track,
            tick=tick,
            type=EventType.NOTE_OFF,
            channel=msg.channel,
            pitch=msg.note,
        )
    if msg.type == "program_change":
        return RawEvent(
            track=track,
            tick=tick,
            type=EventType.PROGRAM,
            channel=msg.channel,
            program=msg.program,
        )
    return None


def separate_channels(
    midi_file: mido.MidiFile, division: int = 480
) -> tuple[list[list[RawEvent]], int]:
    """Split every file track into one event list per MIDI channel.

    Meta events stay with the lowest channel of their file track; a file
    track without channel events yields a single meta-only list.

    Args:
        midi_file: Parsed MIDI file.
        division: Internal ticks per quarter note.

    Returns:
        Tuple of (event lists in file order, last tick of any message).
    """
    source_division = midi_file.ticks_per_beat
    separated: list[list[RawEvent]] = []
    last_tick = 0

    for file_track in midi_file.tracks:
        raw_tick = 0
        timed: list[tuple[int, mido.Message]] = []
        for msg in file_track:
            raw_tick += msg.time
            timed.append((normalize_tick(raw_tick, source_division, division), msg))
        if timed:
            last_tick = max(last_tick, timed[-1][0])

        channels = sorted({msg.channel for _, msg in timed if hasattr(msg, "channel")})
        if not channels:
            channels = [0]
        base = len(separated)
        index_of = {channel: base + i for i, channel in enumerate(channels)}
        lists: list[list[RawEvent]] = [[] for _ in channels]

        for tick, msg in timed:
            channel = getattr(msg, "channel", channels[0])
            track_index = index_of[channel]
            event = to_raw_event(msg, tick, track_index)
            if event is not None:
                lists[track_index - base].append(event)
        separated.extend(lists)

    return separated, last_tick


def merge_note_on_off(events: list[RawEvent]) -> list[Note]:
    """Pair note-on and note-off events into notes.

    A note-off closes the oldest open note of the same channel and pitch.
    Notes still open at the end of the track are closed at its last event.

    Args:
        events: Events of one track ordered by tick.

    Returns:
        Notes in the order they were closed.
    """
    open_notes: dict[tuple[int, int], list[RawEvent]] = defaultdict(list)
    notes: list[Note] = []
    end_tick = events[-1].tick if events else 0

    for event in events:
        key = (event.channel, event.pitch)
        if event.type == EventType.NOTE_ON:
            open_notes[key].append(event)
        elif event.type == EventType.NOTE_OFF:
            if not open_notes[key]:
                logger.debug(f"Note off without note on: pitch {event.pitch} at {event.tick}")
                continue
            start = open_notes[key].pop(0)
            notes.append(
                Note(
                    pitch=start.pitch,
                    velocity=start.velocity,
                    onset_tick=start.tick,
                    length_ticks=event.tick - start.tick,
                )
            )

    for (_, pitch), pending in open_notes.items():
        for start in pending:
            logger.warning(f"Closing dangling note {pitch} from tick {start.tick}")
            notes.append(
                Note(
                    pitch=pitch,
                    velocity=start.velocity,
                    onset_tick=start.tick,
                    length_ticks=end_tick - start.tick,
                )
            )
    return notes


def build_track(events: list[RawEvent], notes: list[Note]) -> Track:
    """Create a track holding one single-note chord per note."""
    channel = next((e.channel for e in events if e.type != EventType.META), 0)
    program = 0
    for event in events:
        if event.type == EventType.PROGRAM:
            program = event.program

    track = Track(channel=channel, program=program, is_drum=channel == DRUM_CHANNEL)
    for note in notes:
        insert_chord(
            track.chords,
            Chord(
                onset_tick=note.onset_tick,
                duration_ticks=note.length_ticks,
                notes=[note],
            ),
        )
    track.update_pitch_stats()
    return track


def ingest(midi_file: mido.MidiFile, params: ImportParams | None = None) -> IngestResult:
    """Run the ingestion stage on a parsed MIDI file.

    Args:
        midi_file: Parsed MIDI file.
        params: Import configuration; defaults are used when None.

    Returns:
        IngestResult with the imported tracks, the time signature map, the
        last tick and the score-wide meta information.
    """
    params = params or ImportParams()
    result = IngestResult()
    result.time_sigs.division = params.division

    separated, last_tick = separate_channels(midi_file, params.division)
    note_track_index = -1

    for events in separated:
        state, deltas = fold_meta([e for e in events if e.type == EventType.META])
        notes = merge_note_on_off(events)

        for delta in deltas:
            if delta.time_signature is not None:
                result.time_sigs.add(delta.tick, *delta.time_signature)
            elif delta.tempo_bpm is not None:
                result.tempo_map[delta.tick] = delta.tempo_bpm
            elif delta.metadata is not None:
                field, text = delta.metadata
                result.metadata[field] = text

        for note in notes:
            last_tick = max(last_tick, note.onset_tick + note.length_ticks)

        if not notes:
            for delta in deltas:
                if delta.key_accidentals is not None:
                    result.key_map[delta.tick] = delta.key_accidentals
            continue

        note_track_index += 1
        options = params.options_for(note_track_index)
        if not options.do_import:
            logger.debug(f"Skipping track {note_track_index}: import disabled")
            continue

        track = build_track(events, notes)
        track.name = state.track_name
        track.options = options
        result.tracks.append(
            ImportedTrack(
                track=track,
                key_map={
                    d.tick: d.key_accidentals
                    for d in deltas
                    if d.key_accidentals is not None
                },
                lyrics=[(d.tick, d.lyric) for d in deltas if d.lyric is not None],
            )
        )

    result.last_tick = last_tick
    logger.debug(
        f"Ingested {len(result.tracks)} tracks, last tick {last_tick}, "
        f"{len(result.time_sigs.events)} time signatures"
    )
    return result
