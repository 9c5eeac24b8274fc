"""Interpretation of MIDI meta events.

Meta events are turned into `MetaDelta` objects by a pure function of the
current per-track state and the event. Nothing here touches the score: the
deltas are collected during ingestion and applied by the assembly stage.
"""

import logging

from pydantic import BaseModel

from midi_to_score.models.core_models import EventType, MetaKind, RawEvent
from midi_to_score.models.pipeline_models import MetaDelta

logger = logging.getLogger(__name__)

MIN_KEY = -7
MAX_KEY = 7

# Meta kinds that become score-level text fields
METADATA_KINDS = {
    MetaKind.COPYRIGHT,
    MetaKind.TITLE,
    MetaKind.SUBTITLE,
    MetaKind.COMPOSER,
    MetaKind.TRANSLATOR,
    MetaKind.POET,
}

# mido key names -> accidentals (sharps positive, flats negative)
KEY_ACCIDENTALS = {
    "Cb": -7, "Gb": -6, "Db": -5, "Ab": -4, "Eb": -3, "Bb": -2, "F": -1,
    "C": 0, "G": 1, "D": 2, "A": 3, "E": 4, "B": 5, "F#": 6, "C#": 7,
    "Abm": -7, "Ebm": -6, "Bbm": -5, "Fm": -4, "Cm": -3, "Gm": -2, "Dm": -1,
    "Am": 0, "Em": 1, "Bm": 2, "F#m": 3, "C#m": 4, "G#m": 5, "D#m": 6, "A#m": 7,
}  # fmt: skip


class MetaState(BaseModel):
    """What the meta events of one track have established so far."""

    track_name: str = ""
    key_accidentals: int | None = None


def key_name_to_accidentals(name: str) -> int | None:
    """Convert a mido key name ("F#m", "Bb", ...) to an accidental count."""
    return KEY_ACCIDENTALS.get(name)


def interpret_meta(state: MetaState, event: RawEvent) -> MetaDelta:
    """Compute the change a meta event makes to `state`.

    Args:
        state: Meta state of the event's track before the event.
        event: The event to interpret.

    Returns:
        A MetaDelta; it is empty when the event changes nothing, is not a
        meta event, or carries an illegal value.
    """
    tick = event.tick
    kind = event.meta_kind
    if event.type != EventType.META or kind is None:
        return MetaDelta(tick=tick)

    if kind in (MetaKind.TEXT, MetaKind.LYRIC):
        return MetaDelta(tick=tick, lyric=event.text)
    if kind == MetaKind.TRACK_NAME:
        return MetaDelta(tick=tick, track_name=event.text)
    if kind == MetaKind.TEMPO:
        if not event.tempo_bpm or event.tempo_bpm <= 0:
            logger.warning(f"Ignoring invalid tempo {event.tempo_bpm} at tick {tick}")
            return MetaDelta(tick=tick)
        return MetaDelta(tick=tick, tempo_bpm=event.tempo_bpm)
    if kind == MetaKind.KEY_SIGNATURE:
        key = event.key_accidentals
        if key is None or not MIN_KEY <= key <= MAX_KEY:
            logger.warning(f"Illegal key signature {key} at tick {tick}")
            return MetaDelta(tick=tick)
        if key == state.key_accidentals:
            return MetaDelta(tick=tick)
        return MetaDelta(tick=tick, key_accidentals=key)
    if kind == MetaKind.TIME_SIGNATURE:
        if not event.numerator or not event.denominator:
            logger.warning(f"Incomplete time signature at tick {tick}")
            return MetaDelta(tick=tick)
        return MetaDelta(tick=tick, time_signature=(event.numerator, event.denominator))
    if kind in METADATA_KINDS:
        return MetaDelta(tick=tick, metadata=(kind.value, event.text))

    logger.debug(f"Unknown meta type {event.meta_code} at tick {tick}")
    return MetaDelta(tick=tick)


def advance(state: MetaState, delta: MetaDelta) -> MetaState:
    """Return the state after applying `delta`."""
    update = {}
    if delta.track_name is not None:
        update["track_name"] = delta.track_name
    if delta.key_accidentals is not None:
        update["key_accidentals"] = delta.key_accidentals
    return state.model_copy(update=update) if update else state


def fold_meta(events: list[RawEvent]) -> tuple[MetaState, list[MetaDelta]]:
    """Interpret a track's meta events in order.

    Args:
        events: Events of one track, ordered by tick.

    Returns:
        The final state and the non-empty deltas in event order.
    """
    state = MetaState()
    deltas: list[MetaDelta] = []
    for event in events:
        delta = interpret_meta(state, event)
        if delta.is_empty:
            continue
        state = advance(state, delta)
        deltas.append(delta)
    return state, deltas
