"""Git collaborators."""

from .checkout import CheckoutSession
from .repository import Repository

__all__ = ["CheckoutSession", "Repository"]
