"""Reconciliation engine: decides create, skip and delete for each object."""

from .errors import TemplateError, UnsupportedKindError
from .marker import ObjectMarker, OwnershipStore, MarkerOwnership, TemplateNameOwnership
from .outcomes import Action, OutcomeRecord, summarize
from .templates import ObjectDefinition, TemplateLoader
from .kinds import ResourceKind
from .context import HydrationContext
from .reconciler import Reconciler

__all__ = [
    "TemplateError",
    "UnsupportedKindError",
    "ObjectMarker",
    "OwnershipStore",
    "MarkerOwnership",
    "TemplateNameOwnership",
    "Action",
    "OutcomeRecord",
    "summarize",
    "ObjectDefinition",
    "TemplateLoader",
    "ResourceKind",
    "HydrationContext",
    "Reconciler",
]
