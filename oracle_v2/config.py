"""
Settings for the oracle verifier, its LevelDB store and the metrics endpoint.

A config file is JSON with one object per section. Missing sections and
missing keys fall back to the dataclass defaults; unknown keys are an error.
"""
import json
import os
from dataclasses import dataclass, asdict, field


@dataclass
class OracleConfig:
    """Knobs of the verification pipeline."""
    replay_window: int = 500
    round_tolerance: int = 10_000  # ms a round may run ahead of the clock
    hcc_window: int = 50
    hcc_k: int = 3
    max_decimal: int = 18

    def __post_init__(self):
        if self.replay_window <= 0:
            raise ValueError("replay_window must be positive")
        if self.hcc_window <= 0:
            raise ValueError("hcc_window must be positive")
        if self.hcc_k < 0:
            raise ValueError("hcc_k cannot be negative")
        if not 0 <= self.max_decimal <= 18:
            raise ValueError("max_decimal must be between 0 and 18")


@dataclass
class DatabaseConfig:
    """Where and how the price store is opened."""
    path: str = "./oracle_data"
    write_buffer_size: int = 4 * 1024 * 1024
    max_open_files: int = 1000
    compression: str = "snappy"


@dataclass
class MonitoringConfig:
    """Prometheus endpoint; off unless asked for."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


# section name -> dataclass, in file order
SECTIONS = {
    'oracle': OracleConfig,
    'database': DatabaseConfig,
    'monitoring': MonitoringConfig,
}


@dataclass
class Config:
    oracle: OracleConfig = field(default_factory=OracleConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def default(cls) -> 'Config':
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        unknown = set(data) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        return cls(**{name: section(**data.get(name, {})) for name, section in SECTIONS.items()})

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        with open(path) as fh:
            return cls.from_dict(json.load(fh))

    def to_dict(self) -> dict:
        return {name: asdict(getattr(self, name)) for name in SECTIONS}

    def to_file(self, path: str):
        """Writes the config as indented JSON, creating parent directories."""
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, 'w') as fh:
            json.dump(self.to_dict(), fh, indent=2)
