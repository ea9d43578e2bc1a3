# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Error Hierarchy

Provides the error types raised by the object layer with:
- Clear error categorization
- Helpful error messages with suggestions
- Context information for debugging
- The status code each error maps to at the boundary API

Error Categories:
- TensorPlanError: Base class for all tensorplan errors
- NotInitializedError: Null handle, descriptor, plan or output
- InvalidValueError: Malformed enum, algorithm or argument
- ArchMismatchError: Current device differs from the handle's device
- InsufficientWorkspaceError: Supplied workspace smaller than required
- NoSupportedSolutionError: No candidate kernel can run the problem
- DecompositionError: A complex sub-contraction cannot run
- ExecutionFailedError: Kernel launch failure on the device
- AllocationError: Device memory allocation failure
- ConfigurationError: Invalid configuration values
"""

from typing import Optional

from .core.types import Status, StatusCode


class TensorPlanError(Exception):
    """
    Base class for all tensorplan errors.

    Provides consistent error formatting and context tracking.

    Attributes:
        message: Human-readable error message
        suggestions: List of suggestions to fix the error
        context: Optional context dictionary for debugging
        status: Status code reported at the boundary API
    """

    status: StatusCode = StatusCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        suggestions: Optional[list[str]] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.suggestions = suggestions or []
        self.context = context or {}

        full_message = self._format_message()
        super().__init__(full_message)

    def _format_message(self) -> str:
        """Format the error message with suggestions."""
        lines = [self.message]

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"  {i}. {suggestion}")

        if self.context:
            lines.append("")
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


class NotInitializedError(TensorPlanError):
    """Raised when a required handle, descriptor or output is missing."""

    status = StatusCode.NOT_INITIALIZED

    def __init__(self, what: str):
        super().__init__(
            message=f"{what} is not initialized",
            suggestions=[f"Create the {what} before passing it in"],
            context={"argument": what},
        )


class InvalidValueError(TensorPlanError):
    """
    Input validation error.

    Raised when:
    - An enum or algorithm tag is malformed
    - A required data pointer is missing
    - A buffer is too small for its descriptor
    """

    status = StatusCode.INVALID_VALUE

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
    ):
        context = {}
        if parameter:
            context["parameter"] = parameter
        if expected:
            context["expected"] = expected
        if received:
            context["received"] = received

        super().__init__(
            message=f"Invalid value: {message}",
            suggestions=[
                "Check the parameter value and type",
                "Review the API documentation",
            ],
            context=context,
        )


class ArchMismatchError(TensorPlanError):
    """Raised when the current device is not the handle's device."""

    status = StatusCode.ARCH_MISMATCH

    def __init__(self, current_device: int, handle_device: int):
        self.current_device = current_device
        self.handle_device = handle_device
        super().__init__(
            message=(
                f"Current device {current_device} does not match "
                f"handle device {handle_device}"
            ),
            suggestions=[
                f"Call set_device({handle_device}) before using this handle",
                "Create a separate handle per device",
            ],
            context={
                "current_device": current_device,
                "handle_device": handle_device,
            },
        )


class InsufficientWorkspaceError(TensorPlanError):
    """Raised when the supplied workspace is smaller than the kernel needs."""

    status = StatusCode.INSUFFICIENT_WORKSPACE

    def __init__(self, required_bytes: int, available_bytes: int, solution: str = ""):
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        context = {
            "required_bytes": required_bytes,
            "available_bytes": available_bytes,
        }
        if solution:
            context["solution"] = solution
        super().__init__(
            message=(
                f"Workspace of {available_bytes} bytes is smaller than the "
                f"required {required_bytes} bytes"
            ),
            suggestions=[
                "Query the size with WorksizePreference.MAX",
                "Pass the same workspace size to plan creation and execution",
            ],
            context=context,
        )


class NoSupportedSolutionError(TensorPlanError):
    """
    Raised when no candidate kernel can run a problem.

    Raised when:
    - The registry query for the operand signature is empty
    - Every candidate rejects the argument shape or alignment
    - Every candidate needs more workspace than offered
    """

    status = StatusCode.INTERNAL_ERROR

    def __init__(self, message: str, candidates: int = 0, signature: Optional[str] = None):
        context = {"candidates": candidates}
        if signature:
            context["signature"] = signature
        super().__init__(
            message=f"No supported solution: {message}",
            suggestions=[
                "Check that the operand data types have compiled kernels",
                "Verify the innermost dimensions are contiguous",
                "Offer a larger workspace",
            ],
            context=context,
        )


class DecompositionError(TensorPlanError):
    """Raised when a complex sub-contraction cannot run."""

    status = StatusCode.INTERNAL_ERROR

    def __init__(self, message: str, step: Optional[str] = None):
        context = {}
        if step:
            context["step"] = step
        super().__init__(
            message=f"Complex decomposition failed: {message}",
            suggestions=["Check that the real kernel supports the operand shapes"],
            context=context,
        )


class ExecutionFailedError(TensorPlanError):
    """
    Error during kernel execution.

    Raised when:
    - Kernel launch fails
    - Runtime execution errors
    """

    status = StatusCode.EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        kernel_name: Optional[str] = None,
        input_shapes: Optional[list] = None,
    ):
        context = {}
        if kernel_name:
            context["kernel"] = kernel_name
        if input_shapes:
            context["input_shapes"] = str(input_shapes)

        super().__init__(
            message=f"Kernel execution failed: {message}",
            suggestions=[
                "Check that input shapes are valid for this kernel",
                "Verify memory alignment requirements",
            ],
            context=context,
        )


class AllocationError(TensorPlanError):
    """Device memory allocation error."""

    status = StatusCode.ALLOC_FAILED

    def __init__(
        self,
        message: str,
        requested_bytes: Optional[int] = None,
        available_bytes: Optional[int] = None,
        device: Optional[int] = None,
    ):
        context = {}
        if requested_bytes is not None:
            context["requested_mb"] = f"{requested_bytes / (1024 * 1024):.2f}"
        if available_bytes is not None:
            context["available_mb"] = f"{available_bytes / (1024 * 1024):.2f}"
        if device is not None:
            context["device"] = device

        super().__init__(
            message=f"Memory error: {message}",
            suggestions=[
                "Free unused device buffers",
                "Use WorksizePreference.MIN to reduce workspace",
            ],
            context=context,
        )


class ConfigurationError(TensorPlanError):
    """
    Configuration or setup error.

    Raised when:
    - Invalid configuration parameters
    - Malformed environment overrides
    """

    status = StatusCode.INVALID_VALUE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if config_value:
            context["config_value"] = str(config_value)

        super().__init__(
            message=f"Configuration error: {message}",
            suggestions=[
                "Check configuration parameters",
                "Review the TENSORPLAN_* environment variables",
            ],
            context=context,
        )


def status_from_exception(exc: TensorPlanError) -> Status:
    """Convert an object-layer error into a boundary status."""
    return Status.Error(exc.status, exc.message)
