"""Profile loader with YAML parsing and environment variable resolution."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from ..exceptions import ConfigurationError
from ..models import HarnessProfile, PayloadSource

_ENV_PATTERN = re.compile(r'\$\{([^}]+)\}')


class ConfigLoader:
  """Loads harness profiles from a directory of YAML files.

  A profile is ``<config_dir>/<name>.yaml`` (``.yml`` is also accepted, with
  ``.yaml`` preferred). ``${VAR}`` patterns are replaced with environment
  variables, and relative payload file paths resolve against the config
  directory.
  """

  def __init__(self, config_dir: Path):
    """Initialize ConfigLoader with the profile directory.

    Args:
      config_dir: Path to directory containing profile files
    """
    self.config_dir = Path(config_dir)

  def load_profile(self, profile_name: str) -> HarnessProfile:
    """Load a profile by name.

    Raises:
      ConfigurationError: If the file is missing, is not a YAML dictionary,
        references an unset environment variable, or has invalid values
    """
    config_file = self.get_profile_path(profile_name)

    try:
      with open(config_file, 'r', encoding='utf-8') as f:
        config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
      raise ConfigurationError(
        f"Invalid YAML in profile: {e}",
        config_file=str(config_file)
      )
    except OSError as e:
      raise ConfigurationError(
        f"Error reading profile: {e}",
        config_file=str(config_file)
      )

    if config_dict is None:
      raise ConfigurationError(
        "Profile is empty",
        config_file=str(config_file)
      )

    if not isinstance(config_dict, dict):
      raise ConfigurationError(
        "Profile must contain a YAML dictionary",
        config_file=str(config_file)
      )

    try:
      resolved = self._resolve_environment_variables(config_dict)
    except ConfigurationError as e:
      e.config_file = str(config_file)
      raise e

    profile = HarnessProfile.from_dict(profile_name, resolved, str(config_file))
    profile.payloads = [self._resolve_payload_path(source) for source in profile.payloads]
    return profile

  def get_profile_path(self, profile_name: str) -> Path:
    """Get the path of a profile file, preferring ``.yaml`` over ``.yml``.

    Raises:
      ConfigurationError: If neither file exists
    """
    yaml_path = self.config_dir / f"{profile_name}.yaml"
    yml_path = self.config_dir / f"{profile_name}.yml"

    if yaml_path.is_file():
      return yaml_path
    elif yml_path.is_file():
      return yml_path
    else:
      raise ConfigurationError(
        f"Profile not found: {profile_name}.yaml or {profile_name}.yml in {self.config_dir}",
        config_file=str(yaml_path)
      )

  def list_available_profiles(self) -> list[str]:
    """List profile names in the config directory.

    Raises:
      ConfigurationError: If the config directory doesn't exist
    """
    if not self.config_dir.exists():
      raise ConfigurationError(
        f"Configuration directory not found: {self.config_dir}"
      )

    if not self.config_dir.is_dir():
      raise ConfigurationError(
        f"Configuration path is not a directory: {self.config_dir}"
      )

    names = set()
    for pattern in ("*.yaml", "*.yml"):
      for file_path in self.config_dir.glob(pattern):
        if file_path.is_file():
          names.add(file_path.stem)

    return sorted(names)

  def validate_profile(self, profile_name: str) -> tuple[bool, Optional[str]]:
    """Validate a profile without using it.

    Returns:
      Tuple of (is_valid, error_message)
    """
    try:
      self.load_profile(profile_name)
      return True, None
    except ConfigurationError as e:
      return False, str(e)

  def _resolve_payload_path(self, source: PayloadSource) -> PayloadSource:
    if source.file is None:
      return source
    path = Path(source.file).expanduser()
    if not path.is_absolute():
      path = self.config_dir / path
    return PayloadSource(file=str(path))

  def _resolve_environment_variables(self, config_dict: dict[str, Any]) -> dict[str, Any]:
    """Resolve ${VAR} patterns in a profile with environment variables.

    Raises:
      ConfigurationError: If a referenced environment variable is missing
    """
    def resolve_value(value: Any, path: str = "") -> Any:
      if isinstance(value, str):
        resolved_value = value
        for var_name in _ENV_PATTERN.findall(value):
          env_value = os.getenv(var_name)
          if env_value is None:
            error_path = f" at {path}" if path else ""
            raise ConfigurationError(
              f"Environment variable '{var_name}' is not set{error_path}",
              field=path or None
            )
          resolved_value = resolved_value.replace(f"${{{var_name}}}", env_value)
        return resolved_value

      elif isinstance(value, dict):
        return {
          key: resolve_value(val, f"{path}.{key}" if path else key)
          for key, val in value.items()
        }

      elif isinstance(value, list):
        return [
          resolve_value(item, f"{path}[{i}]" if path else f"[{i}]")
          for i, item in enumerate(value)
        ]

      else:
        return value

    return resolve_value(config_dict)
