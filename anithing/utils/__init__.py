"""Utility functions."""

from anithing.utils.response import (
    conflict,
    error_response,
    forbidden,
    not_found,
    rewards_error,
    service_error,
    success_response,
    unauthorized,
    validation_error,
)

__all__ = [
    "success_response",
    "error_response",
    "rewards_error",
    "service_error",
    "unauthorized",
    "forbidden",
    "not_found",
    "validation_error",
    "conflict",
]
