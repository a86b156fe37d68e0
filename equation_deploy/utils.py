import json
from collections import OrderedDict
from pathlib import Path

import yaml


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file, keeping the key order of the document."""
    with open(filepath, "r") as file:
        return json.load(file, object_pairs_hook=OrderedDict)
