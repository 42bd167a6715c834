"""
State for the audio trigger server: session logs and application state.
"""
