"""
Server Module for the Piano Synthesizer

Provides a small HTTP server that plays notes on request.

Quick Start:
    ```python
    from piano_synth.server import run_server
    run_server(port=3000, verbose=True)
    ```

Or via CLI:
    ```bash
    python -m piano_synth.server --port 3000
    python main.py --server
    ```

Components:
    - PianoHTTPServer: Routes requests to the engine
    - PlayNoteRequest: Validated ``/playnote`` body
    - ServerConfig: Configuration management
    - run_server: Convenience function
"""

from .config import (
    ServerConfig,
    ErrorCode,
    SCHEMA_VERSION,
    DEFAULT_CONFIG,
    setup_logging,
)
from .schemas import PlayNoteRequest
from .http_server import PianoHTTPServer, run_server

__all__ = [
    "ServerConfig",
    "ErrorCode",
    "SCHEMA_VERSION",
    "DEFAULT_CONFIG",
    "setup_logging",
    "PlayNoteRequest",
    "PianoHTTPServer",
    "run_server",
]
