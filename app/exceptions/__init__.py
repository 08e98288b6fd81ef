# app/exceptions/__init__.py

from exceptions.domain_exceptions import (
    DomainException,
    NotFoundException,
    BadRequestException,
    ConflictException,
    InternalServerException,
    UnknownParticipantException,
    UnknownSenderException,
    UnknownUserException,
    ChatNotFoundException,
    MessageNotFoundException,
    InvalidMessageException,
    MessageAlreadyInChatException,
    UsernameTakenException,
    StorageFailureException
)

__all__ = [
    'DomainException',
    'NotFoundException',
    'BadRequestException',
    'ConflictException',
    'InternalServerException',
    'UnknownParticipantException',
    'UnknownSenderException',
    'UnknownUserException',
    'ChatNotFoundException',
    'MessageNotFoundException',
    'InvalidMessageException',
    'MessageAlreadyInChatException',
    'UsernameTakenException',
    'StorageFailureException'
]
