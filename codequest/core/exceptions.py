"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class EmptyCodeError(ValidationError):
    """Submitted code is blank"""
    def __init__(self):
        super().__init__("Code must not be empty")


class CodeTooLargeError(ValidationError):
    """Submitted code exceeds the size ceiling"""
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Code is too large ({size} characters, limit {limit})",
            details={"size": size, "limit": limit}
        )


class UnsupportedLanguageError(ValidationError):
    """Requested language has no adapter"""
    def __init__(self, language: str, supported: list):
        super().__init__(
            f"Unsupported language: {language}. Supported languages: {', '.join(supported)}.",
            details={"language": language, "supported": supported}
        )


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)


# Code execution errors. Each carries the category name reported to callers.
class CodeExecutionError(BaseAPIException):
    """Code execution failed"""
    error_type = "execution_error"

    def __init__(
        self,
        message: str = "Code execution failed",
        status_code: int = 500,
        diagnostic: Optional[str] = None
    ):
        details = {"diagnostic": diagnostic} if diagnostic else None
        super().__init__(message, status_code=status_code, details=details)
        self.diagnostic = diagnostic


class ToolchainMissingError(CodeExecutionError):
    """No usable interpreter/compiler on the host"""
    error_type = "toolchain_missing"

    def __init__(self, language: str, tried: Optional[list] = None):
        tried_text = ", ".join(tried or [])
        message = f"No {language} toolchain is installed on the server"
        if tried_text:
            message += f" (tried: {tried_text})"
        super().__init__(message, status_code=503)


class CompileError(CodeExecutionError):
    """User code failed to compile"""
    error_type = "compile_error"

    def __init__(self, language: str, diagnostic: str):
        super().__init__(f"{language} compilation failed", status_code=422, diagnostic=diagnostic)


class FunctionNotFoundError(CodeExecutionError):
    """The requested function is not defined by the user code"""
    error_type = "function_not_found"

    def __init__(self, function_name: str, diagnostic: Optional[str] = None):
        super().__init__(
            f"Function {function_name} not found",
            status_code=422,
            diagnostic=diagnostic
        )


class RuntimeFatalError(CodeExecutionError):
    """User code crashed before producing structured output"""
    error_type = "runtime_error"

    def __init__(self, message: str, diagnostic: Optional[str] = None):
        super().__init__(message, status_code=422, diagnostic=diagnostic)


class ExecutionTimeoutError(CodeExecutionError):
    """Child process exceeded its time budget and was killed"""
    error_type = "time_limit_exceeded"

    def __init__(self, phase: str, seconds: float):
        super().__init__(f"Time Limit Exceeded during {phase} ({seconds:g}s)", status_code=408)


class InvalidToolOutputError(CodeExecutionError):
    """The generated harness printed something that is not the result blob"""
    error_type = "invalid_tool_output"

    def __init__(self, diagnostic: str):
        super().__init__("Test harness produced invalid output", status_code=500, diagnostic=diagnostic)


class UnsupportedTypeError(CodeExecutionError):
    """A value or return type cannot be expressed in the target language harness"""
    error_type = "unsupported_type"

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class FileSystemError(BaseAPIException):
    """File system operation failed"""
    def __init__(self, message: str = "File system error"):
        super().__init__(message, status_code=500)


# External collaborators
class GeneratorError(BaseAPIException):
    """Text generation API failed or returned unusable content"""
    def __init__(self, message: str = "Text generation service failed", status_code: int = 502):
        super().__init__(message, status_code=status_code)
