"""Real-time audio relay for telephony media streams.

Inbound: mu-law frames -> PCM16 -> energy gate -> utterance chunker -> transcription.
Outbound: synthesized audio -> 160-byte mu-law frames paced at 20ms.
"""
