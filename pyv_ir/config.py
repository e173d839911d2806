from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List
import logging
import yaml
from pathlib import Path

from .ir.opset import OpSet
from .serialize.serializer import Version, provide_bin_path

logger = logging.getLogger(__name__)


@dataclass
class SerializeConfig:
    """PyV-IR serialization settings."""
    # Input model (ONNX)
    model: str = ""

    # Config file
    config_file: str = ""

    # Output IR
    output: str = "out/model.xml"
    bin_path: str = ""  # derived from `output` when empty
    ir_version: int = int(Version.IR_V10)

    # Extra op-sets: name -> list of operation type names
    custom_opsets: Dict[str, List[str]] = field(default_factory=dict)

    # Reporting
    report_dir: str = ""

    log_level: str = "INFO"

    def resolved_bin_path(self) -> str:
        """The weights file path, derived from `output` unless set explicitly."""
        return provide_bin_path(self.output, self.bin_path)

    def build_custom_opsets(self) -> Dict[str, OpSet]:
        """Turns the configured op-set lists into OpSet objects, keeping their order."""
        return {name: OpSet(name, types) for name, types in self.custom_opsets.items()}

    def update_from_yaml(self, yaml_path: str):
        """Updates config fields from a YAML file."""
        with open(yaml_path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
        for key, value in yaml_config.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning(f"Ignoring unknown config key '{key}' in {yaml_path}")

    @classmethod
    def from_args(cls, args) -> SerializeConfig:
        """Factory method to create a SerializeConfig from parsed argparse arguments."""
        config = cls()

        # 1. Load from YAML config file if provided
        if hasattr(args, 'config') and args.config:
            config.config_file = args.config
            if Path(config.config_file).exists():
                config.update_from_yaml(config.config_file)
            else:
                logger.warning(f"Config file {config.config_file} not found.")

        # 2. Override with command-line arguments
        arg_dict = vars(args)
        for key, value in arg_dict.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)

        return config
