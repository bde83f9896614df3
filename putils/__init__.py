"""
Pulumi helpers.
"""
from .aws import opts, get_region, get_account_id, NoRegionError
from .component import component
from .iam import RolePolicies

__all__ = (
    'opts', 'get_region', 'get_account_id', 'NoRegionError',
    'component', 'RolePolicies',
)
