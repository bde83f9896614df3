"""
Errors raised while building catalogs and compiling policies.

Every error carries the full list of problems found, so a bad catalog can be
fixed in one pass instead of one complaint at a time.
"""

__all__ = 'PolicyError', 'ValidationError', 'CatalogError', 'ResolutionError'


class PolicyError(Exception):
    """
    Base for everything that refuses to produce a policy.
    """
    def __init__(self, violations):
        self.violations = list(violations)
        super().__init__('; '.join(self.violations))


class ValidationError(PolicyError):
    """
    Raised when compiled documents break an invariant (duplicate sid, empty
    document, uncovered action, unjustified wildcard, oversized document).
    """


class CatalogError(ValidationError):
    """
    Raised when a grant catalog is structurally broken.
    """


class ResolutionError(ValidationError):
    """
    Raised when a resource pattern names a placeholder the identifier map
    doesn't have a value for.
    """
    def __init__(self, violations, missing=()):
        super().__init__(violations)
        self.missing = list(missing)
