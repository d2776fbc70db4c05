"""Runtime module for Terraform operations."""

from .retry import DEFAULT_RETRYABLE_ERRORS, ErrorMatcher, RetryPolicy, with_retry
from .options import ScenarioConfig, build_config
from .terraform import TerraformRuntime, TerraformCommand, CommandResult, format_variable
from .outputs import OutputExtractor, OutputShape, OutputValue, parse_outputs
from .workspace import IsolatedWorkspace, unique_id

__all__ = [
    'DEFAULT_RETRYABLE_ERRORS',
    'ErrorMatcher',
    'RetryPolicy',
    'with_retry',
    'ScenarioConfig',
    'build_config',
    'TerraformRuntime',
    'TerraformCommand',
    'CommandResult',
    'format_variable',
    'OutputExtractor',
    'OutputShape',
    'OutputValue',
    'parse_outputs',
    'IsolatedWorkspace',
    'unique_id',
]
