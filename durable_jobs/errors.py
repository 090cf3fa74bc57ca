"""Exception types for the durable jobs library."""


class DurableJobsError(Exception):
    """Base exception for all durable jobs errors."""

    pass


class ConfigurationError(DurableJobsError):
    """Raised for code or deployment defects. Never retried."""

    pass


class UnsupportedDriverError(ConfigurationError):
    """Raised when the configured driver name is unknown."""

    def __init__(self, driver: str, message: str = None):
        self.driver = driver
        if message is None:
            message = f"Unsupported driver: {driver}"
        super().__init__(message)


class JobNotRegisteredError(ConfigurationError):
    """Raised when a job type identifier cannot be resolved."""

    def __init__(self, job_type: str, message: str = None):
        self.job_type = job_type
        if message is None:
            message = f"Job type {job_type} is not registered"
        super().__init__(message)


class JobContractError(DurableJobsError, TypeError):
    """Raised when an object pushed onto a queue is not a job."""

    pass


class DriverConnectionError(DurableJobsError):
    """Raised when the storage or broker backend cannot be reached."""

    pass


class JobTimeoutError(DurableJobsError):
    """Raised when a job exceeds its execution-time budget."""

    def __init__(self, job_name: str, timeout: float, message: str = None):
        self.job_name = job_name
        self.timeout = timeout
        if message is None:
            message = f"Job {job_name} exceeded timeout of {timeout}s"
        super().__init__(message)
