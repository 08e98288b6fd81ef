# app/exceptions/domain_exceptions.py

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base class for all domain exceptions"""

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


class NotFoundException(DomainException):
    """Exception raised when a resource is not found"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            details=details
        )


class BadRequestException(DomainException):
    """Exception raised for invalid client requests"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            details=details
        )


class ConflictException(DomainException):
    """Exception raised when there's a conflict with current state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            details=details
        )


class InternalServerException(DomainException):
    """Exception raised for internal server errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            details=details
        )


# Chat domain errors

class UnknownParticipantException(NotFoundException):
    """A username given as chat participant does not resolve to a user"""


class UnknownSenderException(NotFoundException):
    """A message sender username does not resolve to a user"""


class UnknownUserException(NotFoundException):
    """A user id does not resolve to a user"""


class ChatNotFoundException(NotFoundException):
    """Chat with the given id does not exist"""


class MessageNotFoundException(NotFoundException):
    """Message with the given id does not exist"""


class InvalidMessageException(BadRequestException):
    """Message content violates a domain rule (e.g. empty text)"""


class MessageAlreadyInChatException(ConflictException):
    """Message is already part of a chat's message sequence"""


class UsernameTakenException(ConflictException):
    """Username is already registered"""


class StorageFailureException(InternalServerException):
    """Underlying storage failed while executing an operation"""
