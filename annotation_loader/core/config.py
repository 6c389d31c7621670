#!/usr/bin/env python3

"""
Configuration management for the annotation collection loader.

Loader settings come from defaults, LOADER_* environment variables and an
optional JSON or YAML file, in increasing order of precedence.
"""

import os
import json
from dataclasses import dataclass, asdict, field, fields
from typing import Optional, Dict, Any, List

import yaml

from .exceptions import ConfigurationError

OUTPUT_FORMATS = ('jsonl', 'none')


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class LoaderConfig:
    """Centralized configuration for the annotation collection loader."""

    # Annotation parsing
    protein_domain_tag: str = "InterPro"
    go_prefix: str = "GO:"

    # Sequence regions, used when the README names no prefixes
    chromosome_prefixes: List[str] = field(default_factory=lambda: ["Chr", "chr"])
    supercontig_prefixes: List[str] = field(default_factory=lambda: ["scaffold", "contig"])

    # Collection completeness checked at close
    require_gene_models: bool = True
    require_protein_fasta: bool = True
    require_transcript_fasta: bool = True
    require_gene_families: bool = True

    # Performance settings
    memory_limit_mb: int = 4096
    enable_memory_monitoring: bool = True

    # Output settings
    output_format: str = "jsonl"
    write_log_file: bool = True

    debug_mode: bool = False


    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for values the loader cannot run with."""
        problems = []
        if not self.protein_domain_tag:
            problems.append("protein_domain_tag must not be empty")
        if not self.go_prefix:
            problems.append("go_prefix must not be empty")
        if self.memory_limit_mb < 100:
            problems.append("memory_limit_mb must be >= 100")
        if self.output_format not in OUTPUT_FORMATS:
            problems.append(f"output_format must be one of {', '.join(OUTPUT_FORMATS)}")
        for name in ('chromosome_prefixes', 'supercontig_prefixes'):
            if isinstance(getattr(self, name), str):
                problems.append(f"{name} must be a list")
        if problems:
            raise ConfigurationError("; ".join(problems))

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'LoaderConfig':
        """Build a config from a mapping; unknown keys are ignored."""
        known = {k: v for k, v in config_dict.items() if k in cls.field_names()}
        try:
            return cls(**known)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration parameters: {e}")

    @classmethod
    def from_file(cls, config_path: str) -> 'LoaderConfig':
        """Load a JSON or YAML (.yml/.yaml) configuration file."""
        return cls.from_dict(read_config_file(config_path))

    @classmethod
    def env_overrides(cls) -> Dict[str, Any]:
        """Settings given through LOADER_* environment variables, converted to field types."""
        overrides = {}
        for env_var, (field_name, convert) in ENV_VARIABLES.items():
            raw = os.getenv(env_var)
            if not raw:
                continue
            try:
                overrides[field_name] = convert(raw)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid environment variable {env_var}: {e}")
        return overrides

    @classmethod
    def from_env(cls) -> 'LoaderConfig':
        """Defaults overridden by environment variables."""
        return cls.from_dict(cls.env_overrides())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save_to_file(self, config_path: str) -> None:
        """Write the configuration as YAML or JSON, chosen by file extension."""
        try:
            with open(config_path, 'w') as f:
                if _is_yaml(config_path):
                    yaml.safe_dump(self.to_dict(), f, default_flow_style=False)
                else:
                    json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Error saving configuration: {e}")


def _as_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 'yes')


ENV_VARIABLES = {
    'LOADER_PROTEIN_DOMAIN_TAG': ('protein_domain_tag', str),
    'LOADER_GO_PREFIX': ('go_prefix', str),
    'LOADER_CHROMOSOME_PREFIXES': ('chromosome_prefixes', _split_list),
    'LOADER_SUPERCONTIG_PREFIXES': ('supercontig_prefixes', _split_list),
    'LOADER_MEMORY_LIMIT_MB': ('memory_limit_mb', int),
    'LOADER_ENABLE_MEMORY_MONITORING': ('enable_memory_monitoring', _as_bool),
    'LOADER_OUTPUT_FORMAT': ('output_format', str),
    'LOADER_DEBUG_MODE': ('debug_mode', _as_bool),
}


def _is_yaml(path: str) -> bool:
    return path.lower().endswith(('.yml', '.yaml'))


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Read a configuration mapping from a JSON or YAML file."""
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) if _is_yaml(config_path) else json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid configuration file {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} does not contain a mapping")
    return data


def load_config(config_path: Optional[str] = None,
                use_env: bool = True) -> LoaderConfig:
    """
    Load configuration with priority: file > environment > defaults.

    Only the keys a file actually sets override the environment.
    """
    settings: Dict[str, Any] = {}
    if use_env:
        settings.update(LoaderConfig.env_overrides())
    if config_path:
        settings.update(read_config_file(config_path))
    return LoaderConfig.from_dict(settings)
