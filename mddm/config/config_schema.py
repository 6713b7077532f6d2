"""JSON Schema validation for the MD-DM bridge configuration.

Provides schema definition and validation logic with clear error messages.
"""

import copy
from typing import List, Tuple, Dict, Any

import jsonschema
from jsonschema import Draft7Validator


class ConfigSchema:
    """Configuration schema validator using JSON Schema Draft 7.

    Example:
        >>> is_valid, errors = ConfigSchema.validate_config(config_dict)
        >>> if not is_valid:
        >>>     for error in errors:
        >>>         print(error)
    """

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get JSON Schema Draft 7 for configuration validation."""
        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "md-dm-api Configuration",
            "type": "object",
            "properties": {
                "device": {
                    "type": "object",
                    "description": "MD-DM device connection settings",
                    "properties": {
                        "address": {
                            "type": ["string", "null"],
                            "description": "Device hostname or IP address",
                            "minLength": 1
                        },
                        "port": {
                            "type": "integer",
                            "description": "Device telnet port",
                            "minimum": 1,
                            "maximum": 65535
                        },
                        "command_timeout": {
                            "type": "number",
                            "description": "Seconds to wait for a command's shell prompt",
                            "exclusiveMinimum": 0,
                            "maximum": 60
                        },
                        "connect_timeout": {
                            "type": "number",
                            "description": "Seconds to wait for the first shell prompt",
                            "exclusiveMinimum": 0,
                            "maximum": 300
                        }
                    },
                    "additionalProperties": False
                },
                "logging": {
                    "type": "object",
                    "description": "Process and device traffic logging",
                    "properties": {
                        "level": {
                            "type": "string",
                            "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]
                        },
                        "console_output": {
                            "type": "boolean"
                        },
                        "traffic_log": {
                            "type": "boolean",
                            "description": "Record every command and response to a file"
                        },
                        "log_file_path": {
                            "type": ["string", "null"]
                        },
                        "max_file_size_mb": {
                            "type": "integer",
                            "minimum": 1,
                            "maximum": 1000
                        },
                        "backup_count": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 100
                        }
                    },
                    "additionalProperties": False
                }
            }
        }

    @staticmethod
    def validate_config(config: Dict[str, Any], strict: bool = False) -> Tuple[bool, List[str]]:
        """Validate configuration dictionary against schema.

        Args:
            config: Configuration dictionary to validate.
            strict: Reject unknown fields (permissive by default, so a
                config file shared with the HTTP layer can carry its own
                sections).

        Returns:
            Tuple of (is_valid, error_messages).

        Example:
            >>> is_valid, errors = ConfigSchema.validate_config({"device": {"port": 0}})
            >>> assert not is_valid
        """
        schema = ConfigSchema.get_schema()
        if not strict:
            schema = ConfigSchema._make_permissive(schema)

        validator = Draft7Validator(schema)
        errors = [
            ConfigSchema._format_error(error)
            for error in validator.iter_errors(config)
        ]
        return len(errors) == 0, errors

    @staticmethod
    def _make_permissive(schema: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of the schema that allows additional properties."""
        permissive_schema = copy.deepcopy(schema)

        def remove_additional_properties(obj):
            if isinstance(obj, dict):
                obj.pop("additionalProperties", None)
                for value in obj.values():
                    remove_additional_properties(value)

        remove_additional_properties(permissive_schema)
        return permissive_schema

    @staticmethod
    def _format_error(error: jsonschema.exceptions.ValidationError) -> str:
        """Format validation error with section and field.

        Example:
            "Section 'device', field 'port': Value must be <= 65535, got 70000."
        """
        path_parts = list(error.path)
        if len(path_parts) == 0:
            section = "root"
            field = "configuration"
        elif len(path_parts) == 1:
            section = path_parts[0]
            field = "section"
        else:
            section = path_parts[0]
            field = ".".join(str(p) for p in path_parts[1:])

        if error.validator == "type":
            actual_type = type(error.instance).__name__
            return (f"Section '{section}', field '{field}': Expected type {error.validator_value}, "
                    f"got {actual_type} (value: {error.instance}).")

        elif error.validator == "enum":
            return (f"Section '{section}', field '{field}': Expected one of {error.validator_value}, "
                    f"got {error.instance}.")

        elif error.validator in ("minimum", "exclusiveMinimum"):
            op = ">=" if error.validator == "minimum" else ">"
            return (f"Section '{section}', field '{field}': Value must be {op} {error.validator_value}, "
                    f"got {error.instance}.")

        elif error.validator == "maximum":
            return (f"Section '{section}', field '{field}': Value must be <= {error.validator_value}, "
                    f"got {error.instance}.")

        elif error.validator == "additionalProperties":
            extra_props = set(error.instance.keys()) - set(error.schema.get('properties', {}).keys())
            return f"Section '{section}': Unknown fields {sorted(extra_props)} not allowed."

        return f"Section '{section}', field '{field}': {error.message}"
