"""Configuration validation utilities."""

from dataclasses import dataclass, fields
from typing import Any

from .defaults import (
    ConfirmationParams,
    ContentStoreParams,
    ContractParams,
    InstanceParams,
    RetryParams,
    ScanParams,
)


@dataclass(frozen=True)
class ConfigIssue:
    """Represents a configuration validation problem."""
    field: str
    message: str
    value: Any


CONFIG_SECTIONS = {
    "retry": RetryParams,
    "confirmation": ConfirmationParams,
    "scan": ScanParams,
    "content_store": ContentStoreParams,
    "instance": InstanceParams,
    "contract": ContractParams,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    values = config.get(name, {})
    return values if isinstance(values, dict) else {}


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate(config: dict[str, Any]) -> list[ConfigIssue]:
        """Validate a fully merged configuration dictionary."""
        errors = ConfigValidator.validate_structure(config)

        errors.extend(ConfigValidator.validate_retry_params(_section(config, "retry")))
        errors.extend(ConfigValidator.validate_confirmation_params(_section(config, "confirmation")))
        errors.extend(ConfigValidator.validate_scan_params(_section(config, "scan")))
        errors.extend(ConfigValidator.validate_instance_params(_section(config, "instance")))
        errors.extend(ConfigValidator.validate_contract_params(_section(config, "contract")))

        return errors

    @staticmethod
    def validate_structure(config: dict[str, Any]) -> list[ConfigIssue]:
        """Reject unknown sections and unknown parameters."""
        errors = []

        for section, values in config.items():
            params_cls = CONFIG_SECTIONS.get(section)
            if params_cls is None:
                errors.append(ConfigIssue(
                    field=section,
                    message="Unknown configuration section",
                    value=values
                ))
                continue

            if not isinstance(values, dict):
                errors.append(ConfigIssue(
                    field=section,
                    message="Must be a mapping",
                    value=values
                ))
                continue

            known = {f.name for f in fields(params_cls)}
            for key in values:
                if key not in known:
                    errors.append(ConfigIssue(
                        field=f"{section}.{key}",
                        message="Unknown configuration parameter",
                        value=values[key]
                    ))

        return errors

    @staticmethod
    def validate_retry_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate retry parameters."""
        errors = []

        if "max_attempts" in params:
            value = params["max_attempts"]
            if not _is_int(value) or value < 1:
                errors.append(ConfigIssue(
                    field="retry.max_attempts",
                    message="Must be a positive integer",
                    value=value
                ))

        for key in ("base_delay_seconds", "max_delay_seconds"):
            if key in params:
                value = params[key]
                if not _is_number(value) or value < 0:
                    errors.append(ConfigIssue(
                        field=f"retry.{key}",
                        message="Must be a non-negative number",
                        value=value
                    ))

        if "multiplier" in params:
            value = params["multiplier"]
            if not _is_number(value) or value < 1:
                errors.append(ConfigIssue(
                    field="retry.multiplier",
                    message="Must be a number of at least 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_confirmation_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate confirmation parameters."""
        errors = []

        for key in ("timeout_seconds", "poll_interval_seconds", "request_timeout_seconds"):
            if key in params:
                value = params[key]
                if not _is_number(value) or value <= 0:
                    errors.append(ConfigIssue(
                        field=f"confirmation.{key}",
                        message="Must be a positive number",
                        value=value
                    ))

        if "confirmations" in params:
            value = params["confirmations"]
            if not _is_int(value) or value < 0:
                errors.append(ConfigIssue(
                    field="confirmation.confirmations",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_scan_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate scanner parameters."""
        errors = []

        for key in ("window_size", "max_workers"):
            if key in params:
                value = params[key]
                if not _is_int(value) or value <= 0:
                    errors.append(ConfigIssue(
                        field=f"scan.{key}",
                        message="Must be a positive integer",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_instance_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate the organization details."""
        errors = []

        for key in ("title", "symbol"):
            if key in params:
                value = params[key]
                if not isinstance(value, str) or not value.strip():
                    errors.append(ConfigIssue(
                        field=f"instance.{key}",
                        message="Must be a non-empty string",
                        value=value
                    ))

        if "supply" in params:
            value = params["supply"]
            if not _is_int(value) or value < 0:
                errors.append(ConfigIssue(
                    field="instance.supply",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_contract_params(params: dict[str, Any]) -> list[ConfigIssue]:
        """Validate contract call signatures and gas options."""
        errors = []

        for key in ("install_method", "set_metadata_method", "metadata_getter"):
            if key in params:
                value = params[key]
                if (not isinstance(value, str) or "(" not in value
                        or not value.endswith(")")):
                    errors.append(ConfigIssue(
                        field=f"contract.{key}",
                        message="Must be a function signature such as 'name(string)'",
                        value=value
                    ))

        if "gas_limit" in params:
            value = params["gas_limit"]
            if not _is_int(value) or value <= 0:
                errors.append(ConfigIssue(
                    field="contract.gas_limit",
                    message="Must be a positive integer",
                    value=value
                ))

        if "gas_price_wei" in params:
            value = params["gas_price_wei"]
            if not _is_int(value) or value < 0:
                errors.append(ConfigIssue(
                    field="contract.gas_price_wei",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors
