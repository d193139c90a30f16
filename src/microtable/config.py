# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from pathlib import Path
from typing import Dict, Union

# Third-Party Imports
import yaml

# Local Imports
from microtable import constants

# ==================================== FUNCTIONS ===================================== #

def resolve_relative_paths(config: Dict, config_dir: Path) -> Dict:
    """Converts any relative paths in the configuration to absolute paths based on
    the directory of the config file."""
    for key, value in config.items():
        if isinstance(value, str):
            if value.startswith("./") or value.startswith("../"):
                config[key] = (config_dir / value).resolve()
        elif isinstance(value, dict):
            config[key] = resolve_relative_paths(value, config_dir)
    return config


def get_config(
    config_path: Union[str, Path] = constants.DEFAULT_CONFIG
) -> Dict:
    with open(config_path, "r") as file:
        config = yaml.safe_load(file) or {}

    config_dir = Path(config_path).resolve().parent
    return resolve_relative_paths(config, config_dir)


def is_enabled(config: Dict) -> bool:
    return bool(config.get("enabled", False))
