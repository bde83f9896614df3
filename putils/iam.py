"""
Attach compiled policies to a role.
"""
import pulumi
from pulumi_aws import iam

from rolegen import AccessClass, GrantCatalog, compile_policies

from . import aws
from .component import component

__all__ = 'RolePolicies',


@component(outputs=['read_policy', 'write_policy', 'suppressions'])
def RolePolicies(self, name, *, role, catalog, identifiers=None, opts):
    """
    Compile the catalog once all its identifiers are known, and give the role
    one inline policy per access class.

    identifiers may hold Outputs (ARNs of things being created alongside).
    An access class with no grants gets no policy at all.
    """
    if not isinstance(catalog, GrantCatalog):
        catalog = GrantCatalog(catalog)

    policies = pulumi.Output.from_input(identifiers or {}).apply(
        lambda ids: compile_policies(catalog, ids, name=name)
    )

    # Not an output: PolicySet isn't something the engine can serialize
    self.policies = policies

    attached = {}
    for access_class in AccessClass:
        if not catalog.partition(access_class):
            pulumi.debug(f"{name}: no {access_class.value.lower()} grants, skipping policy")
            attached[access_class] = None
            continue
        attached[access_class] = iam.RolePolicy(
            f"{name}{access_class.value}",
            role=role,
            policy=policies.apply(lambda p, ac=access_class: p[ac].to_json()),
            **aws.opts(parent=self),
        )

    return {
        'read_policy': attached[AccessClass.READ],
        'write_policy': attached[AccessClass.WRITE],
        'suppressions': policies.apply(
            lambda p: {doc.name: doc.metadata() for doc in p if doc.suppressions}
        ),
    }
