"""Configuration settings for the backup storage server."""
import os
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

# Network
HOST = "127.0.0.1"
PORT = 3000

# Storage limits
MAX_BACKUP_BYTES = 512 * 1024  # 512KB
RETENTION_DAYS = 180

# Directory paths
BACKUP_DIR = "./backups"
LOG_DIR = "logs"

# Only clients whose User-Agent contains this token are admitted
CLIENT_TOKEN = "Threema"

# Seconds between two retention sweeps
SWEEP_INTERVAL = 60 * 60

ENV_PREFIX = "SAFESTORE_"


def _env(name: str, default):
    return os.getenv(ENV_PREFIX + name, default)


def _env_flag(name: str) -> bool:
    return _env(name, "").strip().lower() in ("1", "true", "yes", "on")


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {value}")
    return number


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide server settings, built once at startup and never mutated."""
    backup_dir: Path
    max_backup_bytes: int = MAX_BACKUP_BYTES
    retention_days: int = RETENTION_DAYS
    allow_browser: bool = False
    host: str = HOST
    port: int = PORT
    client_token: str = CLIENT_TOKEN
    sweep_interval: int = SWEEP_INTERVAL
    log_dir: str = LOG_DIR

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None) -> 'ServerConfig':
        """Create ServerConfig from command line arguments.

        Every option falls back to a SAFESTORE_* environment variable and then
        to the module defaults above.
        """
        parser = argparse.ArgumentParser(description='Storage server for encrypted backups')
        parser.add_argument('--host', default=_env('HOST', HOST),
                            help='Address to listen on')
        parser.add_argument('--port', type=_positive_int, default=_env('PORT', str(PORT)),
                            help='Port to listen on')
        parser.add_argument('--backup-dir', default=_env('BACKUP_DIR', BACKUP_DIR),
                            help='Directory holding the stored backups')
        parser.add_argument('--max-backup-bytes', type=_positive_int,
                            default=_env('MAX_BACKUP_BYTES', str(MAX_BACKUP_BYTES)),
                            help='Largest accepted backup in bytes')
        parser.add_argument('--retention-days', type=_non_negative_int,
                            default=_env('RETENTION_DAYS', str(RETENTION_DAYS)),
                            help='Days after which backups are removed (0 disables the sweeper)')
        parser.add_argument('--allow-browser', action='store_true', default=_env_flag('ALLOW_BROWSER'),
                            help='Skip the user agent check and allow cross-origin requests')
        parser.add_argument('--client-token', default=_env('CLIENT_TOKEN', CLIENT_TOKEN),
                            help='Token the User-Agent header must contain')
        parser.add_argument('--sweep-interval', type=_positive_int,
                            default=_env('SWEEP_INTERVAL', str(SWEEP_INTERVAL)),
                            help='Seconds between two retention sweeps')
        parser.add_argument('--log-dir', default=_env('LOG_DIR', LOG_DIR),
                            help='Directory for the log file (empty to log to the console only)')
        args = parser.parse_args(argv)

        return cls(
            backup_dir=Path(args.backup_dir),
            max_backup_bytes=args.max_backup_bytes,
            retention_days=args.retention_days,
            allow_browser=args.allow_browser,
            host=args.host,
            port=args.port,
            client_token=args.client_token,
            sweep_interval=args.sweep_interval,
            log_dir=args.log_dir,
        )
