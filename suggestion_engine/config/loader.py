"""YAML configuration loader with environment variable overrides.

Configuration is resolved in layers (later layers override earlier):

    1. Settings defaults   -- the field defaults in settings.py
    2. config/config.yaml  -- tuning checked into the repo
    3. .env file / env     -- only the fields actually set there

A ``Settings`` default never masks a YAML value: step 3 merges just the
fields in ``settings.model_fields_set``.  The YAML file also carries the
tables that don't fit in env vars (vibe-conflict clusters, the title
denylist, facet names).
"""

from pathlib import Path

import yaml

from suggestion_engine.config.settings import Settings

# Config path -> Settings field, for every scalar an env var can override.
_SETTING_PATHS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("app", "host"), "app_host"),
    (("app", "port"), "app_port"),
    (("app", "env"), "app_env"),
    (("engine", "result_size"), "result_size"),
    (("engine", "provider_timeout"), "provider_timeout"),
    (("providers", "tag_overlap", "min_score"), "tag_min_score"),
    (("providers", "same_developer", "score"), "same_developer_score"),
    (("providers", "facet_embedding", "similarity_floor"), "facet_similarity_floor"),
    (("providers", "external_ranker", "enabled"), "ranker_enabled"),
    (("providers", "external_ranker", "threshold"), "ranker_threshold"),
    (("providers", "external_ranker", "pool_size"), "ranker_pool_size"),
    (("rate_limits", "steamspy"), "steamspy_min_interval"),
    (("rate_limits", "steam_store"), "steam_store_min_interval"),
    (("worker", "poll_interval"), "worker_poll_interval"),
    (("worker", "max_concurrent_jobs"), "max_concurrent_jobs"),
    (("stream", "poll_interval"), "stream_poll_interval"),
    (("stream", "max_no_change"), "stream_max_no_change"),
    (("logging", "level"), "log_level"),
)


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and layer it between Settings defaults and explicit env values.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    resolved = _settings_tree(settings)
    _deep_merge(resolved, yaml_config)
    _deep_merge(resolved, _settings_tree(settings, only=settings.model_fields_set))
    return resolved


def _settings_tree(settings: Settings, only: set[str] | None = None) -> dict:
    """Nest Settings values under their config paths, optionally only *only* fields."""
    tree: dict = {}
    for path, field in _SETTING_PATHS:
        if only is not None and field not in only:
            continue
        node = tree
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = getattr(settings, field)
    return tree


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
