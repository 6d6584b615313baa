"""
Backend factory for creating transcription backends.

Vendors register themselves with @register_backend; the pipeline asks for
one by id and only ever sees the TranscriptionBackend interface.
"""

from typing import Dict, List, Optional, Type

from .base import BackendNotAvailableError, TranscriptionBackend


# Registry of known backends (populated by register_backend)
_backend_registry: Dict[str, Type[TranscriptionBackend]] = {}


def register_backend(backend_class: Type[TranscriptionBackend]) -> Type[TranscriptionBackend]:
    """
    Register a backend class in the registry.

    Use as a decorator:
        @register_backend
        class MyBackend(TranscriptionBackend):
            BACKEND_ID = "my_backend"
    """
    _backend_registry[backend_class.BACKEND_ID] = backend_class
    return backend_class


def get_available_backends() -> List[str]:
    """
    Get list of backend IDs that are usable (credentials configured).

    Returns:
        List of backend IDs that can be used
    """
    return [backend_id for backend_id, backend_class in _backend_registry.items()
            if backend_class.is_available()]


def is_backend_available(backend_id: str) -> bool:
    """Check if a specific backend is registered and usable."""
    if backend_id not in _backend_registry:
        return False
    return _backend_registry[backend_id].is_available()


def create_backend(backend_id: str, **options) -> TranscriptionBackend:
    """
    Create an instance of the specified backend.

    Args:
        backend_id: The backend ID to instantiate
        **options: Passed to the backend constructor (api_key, language, ...)

    Returns:
        An instance of the requested backend

    Raises:
        BackendNotAvailableError: If the backend is not configured and no api_key was given
        ValueError: If the backend ID is unknown
    """
    if backend_id not in _backend_registry:
        available = list(_backend_registry.keys())
        raise ValueError(f"Unknown backend '{backend_id}'. Available: {available}")

    backend_class = _backend_registry[backend_id]

    if not options.get("api_key") and not backend_class.is_available():
        raise BackendNotAvailableError(backend_id, backend_class.get_install_hint())

    return backend_class(**options)


def get_backend_class(backend_id: str) -> Optional[Type[TranscriptionBackend]]:
    """Get the class for a specific backend (without instantiating)."""
    return _backend_registry.get(backend_id)


def get_all_backends() -> Dict[str, Type[TranscriptionBackend]]:
    """Get all registered backends (available or not)."""
    return dict(_backend_registry)


def _register_backends():
    """Import vendor modules to register them."""
    from . import assemblyai_backend  # noqa: F401
    from . import openai_backend  # noqa: F401


# Register backends on module load
_register_backends()
