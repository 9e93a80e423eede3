"""
Sound cues for the browser client.

Each physics/controller event maps to a short sine tone. The tones are
synthesized on demand (numpy + wave) and served by server.py as WAV files.
"""

import io
import wave
import numpy as np

from physics import PocketCapture, RailBounce, BallCollision, ShotFired

SAMPLE_RATE = 44100

# cue name -> (frequency Hz, duration s)
SOUND_CUES = {
    "rail_bounce":    (500.0, 0.05),
    "ball_collision": (880.0, 0.03),
    "pocket_cue":     (120.0, 0.2),
    "pocket_object":  (200.0, 0.12),
    "shot_fired":     (200.0, 0.04),
}

_wav_cache: dict = {}


def cue_for(event):
    """Return the sound-cue name for an event, or None if it is silent."""
    if isinstance(event, PocketCapture):
        return "pocket_cue" if event.was_cue else "pocket_object"
    if isinstance(event, RailBounce):
        return "rail_bounce"
    if isinstance(event, BallCollision):
        return "ball_collision"
    if isinstance(event, ShotFired):
        return "shot_fired"
    return None


def sound_message(event):
    cue = cue_for(event)
    if cue is None:
        return None
    freq, dur = SOUND_CUES[cue]
    return {"cue": cue, "freq": freq, "dur": dur}


def synth_tone(freq: float, dur: float, peak: float = 0.2) -> bytes:
    """Mono 16-bit WAV: 5 ms exponential attack, exponential decay to silence."""
    n = max(1, int(SAMPLE_RATE * dur))
    t = np.arange(n) / SAMPLE_RATE
    attack = 0.005
    floor = 1e-4
    env = np.where(
        t < attack,
        floor * (peak / floor) ** (t / attack),
        peak * (floor / peak) ** ((t - attack) / max(dur - attack, 1e-6)),
    )
    sig = env * np.sin(2 * np.pi * freq * t)
    data_int = (np.clip(sig, -1.0, 1.0) * 32767).astype(np.int16)

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(data_int.tobytes())
    return buf.getvalue()


def cue_wav(cue: str) -> bytes:
    """Cached WAV bytes for a named cue. Raises KeyError for unknown cues."""
    if cue not in _wav_cache:
        freq, dur = SOUND_CUES[cue]
        _wav_cache[cue] = synth_tone(freq, dur)
    return _wav_cache[cue]
