"""
Music logic for the audio trigger server.

Asset store, playlist store and random queue generation.
"""
