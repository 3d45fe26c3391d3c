"""
ClipGuard Configuration
=======================

This module handles configuration loading for ClipGuard.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CLIPGUARD_HAMMING_THRESHOLD  -> hashing.hamming_threshold
    CLIPGUARD_MIN_ONES_ZEROS     -> hashing.min_ones_zeros
    CLIPGUARD_FRAMES_TO_CAPTURE  -> sampling.frames_to_capture
    CLIPGUARD_FRAME_DELAY_MS     -> sampling.frame_delay_ms
    CLIPGUARD_MAX_CONCURRENT     -> queue.max_concurrent
    CLIPGUARD_JOB_TIMEOUT_MS     -> queue.job_timeout_ms
    CLIPGUARD_LOG_LEVEL          -> logging.level
    CLIPGUARD_PORT               -> server.port
    PORT                         -> server.port (takes precedence)

Example:
    from clipguard.config import load_config
    
    settings = load_config()
    print(settings.hashing.hamming_threshold)
    print(settings.queue.max_concurrent)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class HashingConfig(BaseModel):
    """Perceptual hash and matching configuration."""
    
    sample_size: int = Field(
        default=32,
        ge=8,
        description="Edge S of the square grayscale sample matrix",
    )
    block_size: int = Field(
        default=8,
        ge=2,
        description="Edge K of the low-frequency DCT block",
    )
    hamming_threshold: int = Field(
        default=12,
        ge=0,
        description="Maximum Hamming distance for a match (sensitivity)",
    )
    min_ones_zeros: int = Field(
        default=4,
        ge=0,
        description="Minimum count of ones and of zeros for a usable fingerprint",
    )


class SamplingConfig(BaseModel):
    """Frame sampling configuration."""
    
    frames_to_capture: int = Field(
        default=3,
        ge=1,
        description="Frames averaged for a blocking fingerprint",
    )
    auto_scan_frames: int = Field(
        default=2,
        ge=1,
        description="Frames averaged for a background check",
    )
    frame_delay_ms: int = Field(
        default=120,
        ge=0,
        description="Delay between frame captures",
    )
    ready_timeout_ms: int = Field(
        default=1500,
        ge=0,
        description="Maximum wait for the source to become ready",
    )
    ready_state_threshold: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Minimum source ready state before capture",
    )
    seek_timeout_ms: int = Field(
        default=2000,
        ge=0,
        description="Maximum wait for a seek to settle",
    )
    seek_fraction: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Seek target as a fraction of duration",
    )
    max_seek_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Cap on the seek target in seconds",
    )


class QueueConfig(BaseModel):
    """Concurrency queue configuration."""
    
    max_concurrent: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum simultaneously active jobs",
    )
    job_timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="Per-job timeout",
    )
    poll_interval_ms: int = Field(
        default=100,
        gt=0,
        description="Poll interval used by wait_for_completion",
    )


class RetryConfig(BaseModel):
    """Caller-level retry policy for fingerprinting."""
    
    attempts: int = Field(default=3, ge=1, description="Total attempts")
    backoff_ms: int = Field(default=300, ge=0, description="Backoff after an error")
    trivial_backoff_ms: int = Field(
        default=800,
        ge=0,
        description="Backoff after a trivial (no-signal) fingerprint",
    )


class ServerConfig(BaseModel):
    """Server configuration."""
    
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for ClipGuard.
    
    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """
    
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.
    
    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        
    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        
    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break
    
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")
    
    _apply_env_overrides(config_data)
    
    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""
    
    # Hashing settings
    if env_threshold := os.environ.get("CLIPGUARD_HAMMING_THRESHOLD"):
        config_data.setdefault("hashing", {})["hamming_threshold"] = int(env_threshold)
    if env_min := os.environ.get("CLIPGUARD_MIN_ONES_ZEROS"):
        config_data.setdefault("hashing", {})["min_ones_zeros"] = int(env_min)
    
    # Sampling settings
    if env_frames := os.environ.get("CLIPGUARD_FRAMES_TO_CAPTURE"):
        config_data.setdefault("sampling", {})["frames_to_capture"] = int(env_frames)
    if env_delay := os.environ.get("CLIPGUARD_FRAME_DELAY_MS"):
        config_data.setdefault("sampling", {})["frame_delay_ms"] = int(env_delay)
    
    # Queue settings
    if env_max := os.environ.get("CLIPGUARD_MAX_CONCURRENT"):
        config_data.setdefault("queue", {})["max_concurrent"] = int(env_max)
    if env_timeout := os.environ.get("CLIPGUARD_JOB_TIMEOUT_MS"):
        config_data.setdefault("queue", {})["job_timeout_ms"] = int(env_timeout)
    
    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("CLIPGUARD_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    
    # Logging settings
    if env_log := os.environ.get("CLIPGUARD_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    
    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
