from abc import ABC, abstractmethod
from typing import List, Optional

from .models import ListPage, ScopedCredentials, StackDescriptor, StackEvent, StackState


class StackControlPlane(ABC):
    """Declarative infrastructure service that owns stack state"""

    @abstractmethod
    def describe_stack(self, name: str) -> StackState:
        """Return the current state of a stack

        Raises:
            StackNotFoundError: if the stack does not exist
        """
        pass

    @abstractmethod
    def create_stack(self, descriptor: StackDescriptor) -> None:
        pass

    @abstractmethod
    def update_stack(self, descriptor: StackDescriptor) -> None:
        """Start an update

        Raises:
            NoChangesError: if the template and parameters match the live stack
        """
        pass

    @abstractmethod
    def delete_stack(self, name: str) -> None:
        pass

    @abstractmethod
    def list_stack_events(self, name: str) -> List[StackEvent]:
        """Events for a stack, most recent first"""
        pass


class IdentityBroker(ABC):
    """Exchanges the caller's identity for role credentials"""

    @abstractmethod
    def assume_role(self, role_arn: str, session_name: str, external_id: str,
                    duration_seconds: int) -> ScopedCredentials:
        pass


class ObjectStore(ABC):
    """Flat key/value object storage"""

    @abstractmethod
    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        pass

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        pass

    @abstractmethod
    def list_objects(self, bucket: str, continuation_token: Optional[str] = None) -> ListPage:
        pass


class CacheDistribution(ABC):
    """Edge cache in front of an object store"""

    @abstractmethod
    def create_invalidation(self, distribution_id: str, path_patterns: List[str],
                            caller_reference: str) -> str:
        """Start an invalidation and return its id"""
        pass

    @abstractmethod
    def get_invalidation(self, distribution_id: str, invalidation_id: str) -> str:
        """Return the provider status string of an invalidation"""
        pass
