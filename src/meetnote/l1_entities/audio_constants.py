"""Audio format constants shared by the on-device decode and inference path."""

SAMPLE_RATE = 16000
