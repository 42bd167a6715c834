"""
Broadcast Core module for the audio trigger server.

This package contains play items and the playlist grammar, audio sources,
the playback engine and the single playback worker.
"""
