"""Chord building: merging near-simultaneous notes.

Performers and sequencers rarely start the notes of a chord on exactly the
same tick. Notes whose onsets (and, outside percussion, offsets) lie within
a small jitter window of the group's first note are merged into one chord.
"""

import logging

from midi_to_score.models import Chord, DrumMap, Track

logger = logging.getLogger(__name__)


def find_chords(
    track: Track, drum_map: DrumMap | None = None, jitter: int = 3
) -> list[Chord]:
    """Merge the single-note chords of a track into chords.

    Every candidate is compared with the anchor (the first chord of the
    group), never with other members, so a run of notes each a few ticks
    apart does not drift into one chord. On drum tracks the anchor's voice
    comes from the drum map and a candidate only joins when its pitch is
    mapped to that same voice; offsets are not compared there.

    Args:
        track: Track whose chords are ordered by onset.
        drum_map: Percussion mapping, used only when the track is a drum track.
        jitter: Onset/offset tolerance in ticks.

    Returns:
        The merged chords ordered by onset. The track is not modified.
    """
    drums = drum_map if track.is_drum else None
    chords = [c.model_copy(deep=True) for c in track.chords]
    merged: list[Chord] = []

    i = 0
    while i < len(chords):
        anchor = chords[i]
        ontime, offtime = anchor.onset_tick, anchor.offset_tick
        pitch = anchor.notes[0].pitch

        use_drums = False
        if drums is not None:
            if drums.is_valid(pitch):
                use_drums = True
                anchor.voice = drums.voice(pitch)
            else:
                logger.warning(f"Unmapped drum pitch {pitch} at tick {ontime}")

        k = i + 1
        while k < len(chords):
            candidate = chords[k]
            if candidate.onset_tick - jitter > ontime:
                break
            if abs(candidate.onset_tick - ontime) > jitter or (
                not use_drums and abs(candidate.offset_tick - offtime) > jitter
            ):
                k += 1
                continue

            other = candidate.notes[0].pitch
            if use_drums and not (
                drums.is_valid(other) and drums.voice(other) == anchor.voice
            ):
                k += 1
                continue

            del chords[k]
            for note in candidate.notes:
                if note.pitch in anchor.pitches:
                    logger.warning(
                        f"Dropping duplicate note {note.pitch} at tick {ontime}"
                    )
                    continue
                anchor.notes.append(note)

        merged.append(anchor)
        i += 1

    logger.debug(f"Built {len(merged)} chords from {len(track.chords)} notes")
    return merged
