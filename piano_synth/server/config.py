"""
Server Configuration Module

Centralized configuration for the HTTP note server.
All constants and defaults are defined here for easy modification.
"""

from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Optional
import logging
import os

from ..config_loader import SynthConfig
from ..utils import SAMPLE_RATE


SCHEMA_VERSION = "1.0.0"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class ServerConfig:
    """
    Configuration for the piano note HTTP server.

    Attributes:
        host: Host address to bind to
        port: TCP port to listen on
        sink: Output kind for played notes (null / wav / device)
        output_dir: Directory for WAV output
        sample_rate: Render sample rate in Hz
        verbose: Enable verbose logging
        log_file: Optional rotating log file
    """
    # Network Configuration
    host: str = "127.0.0.1"
    port: int = 3000

    # Audio Output
    sink: str = "device"
    output_dir: Optional[str] = None
    sample_rate: int = SAMPLE_RATE

    # Logging
    verbose: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create config from environment variables.

        Environment Variables:
            PIANO_HOST: Host address
            PIANO_PORT / PORT: Listen port
            PIANO_SINK: Output sink kind
            PIANO_OUTPUT_DIR: WAV output directory
            PIANO_SAMPLE_RATE: Render sample rate
            PIANO_VERBOSE: Enable verbose mode (1/true/yes)
        """
        return cls(
            host=os.getenv("PIANO_HOST", "127.0.0.1"),
            port=int(os.getenv("PIANO_PORT", os.getenv("PORT", 3000))),
            sink=os.getenv("PIANO_SINK", "device"),
            output_dir=os.getenv("PIANO_OUTPUT_DIR"),
            sample_rate=int(os.getenv("PIANO_SAMPLE_RATE", SAMPLE_RATE)),
            verbose=os.getenv("PIANO_VERBOSE", "").lower() in ("1", "true", "yes"),
        )

    def synth_config(self, base: Optional[SynthConfig] = None) -> SynthConfig:
        """Engine settings for notes played by the server."""
        data = (base or SynthConfig()).to_dict()
        data.update(sink=self.sink, output_dir=self.output_dir, sample_rate=self.sample_rate)
        return SynthConfig.from_dict(data)


# Error Codes
class ErrorCode:
    """
    Error codes for structured error reporting.

    Codes sit outside the HTTP status range.
    """
    # Request errors (1xxx)
    INVALID_PAYLOAD = 1001
    ROUTE_NOT_FOUND = 1002

    # Playback errors (3xxx)
    PLAYBACK_FAILED = 3001

    # Server errors (9xxx)
    INTERNAL = 9001


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure root logging for the server and CLI.

    Args:
        verbose: DEBUG instead of INFO
        log_file: Also log to this file, rotated at 1MB
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


# Default configuration instance
DEFAULT_CONFIG = ServerConfig()
