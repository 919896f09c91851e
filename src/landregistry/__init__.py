"""
landregistry - land-parcel registration engine.

Moves registration applications through submission, review and approval, and
issues verifiable ownership certificates on approval. See
``landregistry.application.engine.RegistryEngine`` for the operation surface.
"""

__version__ = "0.1.0"
