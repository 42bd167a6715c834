"""
Audio trigger server entry point.

Run with: python -m audio_server
"""

import sys

from audio_server.app.run import main

if __name__ == "__main__":
    sys.exit(main())
