"""
App module for the audio trigger server.

Contains the playback service, the HTTP server and process bootstrap.
"""
