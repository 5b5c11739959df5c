"""Common error handling for all services"""

class ServiceError(Exception):
    """Base exception for all service errors"""
    pass

class DatabaseError(ServiceError):
    """Base exception for database-related errors"""
    pass

class ClassifierError(ServiceError):
    """Base exception for classifier-related errors"""
    pass

class AIClassifierError(ClassifierError):
    """Exception raised when the remote AI classifier cannot be reached"""
    pass

class AutomationError(ServiceError):
    """Base exception for OS automation errors"""
    pass

class SessionError(ServiceError):
    """Base exception for focus session errors"""
    pass

class ActiveSessionExistsError(SessionError):
    """Exception raised when starting a session while another is active"""
    pass

class NoActiveSessionError(SessionError):
    """Exception raised when an operation needs an active session and none exists"""
    pass

class ConfigError(ServiceError):
    """Base exception for configuration errors"""
    pass

class RunnerError(ServiceError):
    """Base exception for service runner errors"""
    pass
