"""
Code to generate AWS IAM policy documents from a catalog of the permissions a
principal needs.

Each grant names its actions, the resources they apply to, and whether it's a
read or a write. Grants compile into two documents (read and write), with a
cfn_nag suppression for every '*' that couldn't be avoided.

    catalog = GrantCatalog([
        CapabilityGrant('regions', AccessClass.READ, ['ec2:DescribeRegions'], ['*'],
                        justification='ec2:DescribeRegions has no resource-level permissions'),
        CapabilityGrant('table', AccessClass.WRITE, ['dynamodb:UpdateItem'],
                        ['arn:aws:dynamodb:{region}:{account}:table/{table}']),
    ])
    policies = compile_policies(catalog, {'region': ..., 'account': ..., 'table': ...})
"""
from .compiler import compile_policies
from .documents import PolicyDocument, PolicySet, Statement, Suppression
from .errors import CatalogError, PolicyError, ResolutionError, ValidationError
from .grants import AccessClass, CapabilityGrant, GrantCatalog

__all__ = (
    'compile_policies',
    'AccessClass', 'CapabilityGrant', 'GrantCatalog',
    'PolicyDocument', 'PolicySet', 'Statement', 'Suppression',
    'PolicyError', 'ValidationError', 'CatalogError', 'ResolutionError',
)
