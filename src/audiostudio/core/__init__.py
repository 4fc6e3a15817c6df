"""
Core generation functionality.

This module contains the request model and the parameter validation rules. The
orchestrator that ties a request to the provider and the artifact store lives in
:mod:`audiostudio.core.orchestrator`.
"""

from . import models, validation
from .models import GenerationResult, OperationKind
from .validation import validate_request

__all__ = ["models", "validation", "GenerationResult", "OperationKind", "validate_request"]
