import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG: dict = {
    "provider": "openai",
    "model_name": None,  # None = provider default
    "max_chars_per_file": 20000,
    "guidelines": None,  # path to a Markdown file appended to the prompt
    "exclude": [],  # fnmatch patterns or directory names to leave out of the review
    "cache": "file",  # file | sqlite | none
    "cache_dir": ".prverdict/reviews",
    "cache_path": ".prverdict/reviews.db",
    "strict_line_validation": False,
}


def load_config(
    config_path: str = ".prverdict.yml",
    cli_overrides: Optional[dict] = None,
    env_file: Optional[str] = ".env",
) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prverdict.yml in the current directory
      3. CLI argument overrides

    Credentials are read from the environment here and nowhere else, after
    loading ``env_file`` (existing variables win over the file).
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if env_file and Path(env_file).exists():
        load_dotenv(dotenv_path=env_file, override=False)

    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")

    return config


def load_guidelines(config: dict) -> str:
    """
    Load optional review guidelines.

    Returns an empty string when ``guidelines`` is not configured; raises
    FileNotFoundError when it points at a missing file.
    """
    custom_path = config.get("guidelines")
    if not custom_path:
        return ""
    p = Path(custom_path)
    if not p.exists():
        raise FileNotFoundError(f"Guidelines file not found: {custom_path}")
    return p.read_text()
