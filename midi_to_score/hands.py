"""Left/right hand separation for single-track piano parts.

A piano recorded on one track is written on two staves. The heuristic
groups chords that start close together into clusters and, per cluster,
either splits by register (when the cluster spans more than an octave) or
gives the top chord to the right hand and the rest to the left.
"""

import logging

from midi_to_score.models import Chord, ImportedTrack, Track, insert_chord

logger = logging.getLogger(__name__)


def duration_tolerance(track: Track) -> int:
    """Return the shortest note length in the track."""
    return min(n.length_ticks for c in track.chords for n in c.notes)


def clusters(chords: list[Chord], tolerance: int) -> list[list[Chord]]:
    """Group chords whose onsets lie within `tolerance` of the cluster's first onset.

    Args:
        chords: Chords ordered by onset.
        tolerance: Maximum distance from the cluster's reference onset.

    Returns:
        Consecutive clusters covering every chord exactly once.
    """
    groups: list[list[Chord]] = []
    current: list[Chord] = []
    reference = 0
    for chord in chords:
        if current and chord.onset_tick - reference > tolerance:
            groups.append(current)
            current = []
        if not current:
            reference = chord.onset_tick
        current.append(chord)
    if current:
        groups.append(current)
    return groups


def split_cluster(cluster: list[Chord], octave: int = 12) -> tuple[list[Chord], list[Chord]]:
    """Assign the chords of one cluster to the hands.

    Args:
        cluster: Chords starting close together.
        octave: Pitch span above which both hands are needed.

    Returns:
        Tuple of (left hand chords, right hand chords).
    """
    ordered = sorted(cluster, key=lambda c: c.lowest_pitch)
    min_pitch = ordered[0].lowest_pitch
    max_pitch = ordered[-1].lowest_pitch
    if max_pitch - min_pitch > octave:
        left = [c for c in ordered if c.lowest_pitch <= min_pitch + octave]
        right = [c for c in ordered if c.lowest_pitch > min_pitch + octave]
        return left, right
    return ordered[:-1], ordered[-1:]


def split_track(track: Track, octave: int = 12) -> list[Track]:
    """Split a track into right and left hand tracks.

    Args:
        track: Source track with chords ordered by onset.
        octave: Pitch span above which a cluster is split by register.

    Returns:
        [right, left], leaving out a hand that received no chords. The
        right hand keeps the source track's identity and options; the left
        hand gets a copy of them.
    """
    if not track.chords:
        return [track]

    tolerance = duration_tolerance(track)
    left: list[Chord] = []
    right: list[Chord] = []
    for cluster in clusters(track.chords, tolerance):
        lh, rh = split_cluster(cluster, octave)
        for chord in lh:
            insert_chord(left, chord)
        for chord in rh:
            insert_chord(right, chord)

    result = []
    for chords in (right, left):
        if not chords:
            continue
        hand = track.model_copy(
            update={"chords": chords, "options": track.options.model_copy()}
        )
        hand.update_pitch_stats()
        result.append(hand)
    logger.debug(f"Hand separation: {len(right)} right, {len(left)} left chords")
    return result


def separate_hands(tracks: list[ImportedTrack], octave: int = 12) -> list[ImportedTrack]:
    """Apply hand separation to every track that asks for it.

    The output list is built in one pass and returned whole, so indices into
    the input list stay valid while it is being read.

    Args:
        tracks: Imported tracks in score order.
        octave: Pitch span above which a cluster is split by register.

    Returns:
        New track list; a split track is followed directly by its left hand.
        Both hands share the source key map; lyrics stay with the first hand.
    """
    result: list[ImportedTrack] = []
    for imported in tracks:
        if not imported.track.options.do_lh_rh_separation:
            result.append(imported)
            continue
        for i, hand in enumerate(split_track(imported.track, octave)):
            result.append(
                ImportedTrack(
                    track=hand,
                    key_map=dict(imported.key_map),
                    lyrics=list(imported.lyrics) if i == 0 else [],
                )
            )
    return result
