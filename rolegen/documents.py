"""
Compiled policy documents, and how they look to AWS and to cfn_nag.
"""
from dataclasses import dataclass
import json

from .grants import AccessClass, freeze_conditions, thaw_conditions

__all__ = 'Statement', 'Suppression', 'PolicyDocument', 'PolicySet'

POLICY_VERSION = '2012-10-17'


@dataclass(frozen=True)
class Statement:
    sid: str
    actions: tuple
    resources: tuple
    conditions: dict = None
    effect: str = 'Allow'
    grant_id: str = None

    def __post_init__(self):
        if isinstance(self.conditions, dict):
            object.__setattr__(self, 'conditions', freeze_conditions(self.conditions))

    def to_dict(self):
        stmt = {
            'Sid': self.sid,
            'Effect': self.effect,
            'Action': list(self.actions),
            'Resource': list(self.resources),
        }
        if self.conditions:
            stmt['Condition'] = thaw_conditions(self.conditions)
        return stmt


@dataclass(frozen=True)
class Suppression:
    rule_id: str
    reason: str

    def to_dict(self):
        return {'id': self.rule_id, 'reason': self.reason}


@dataclass(frozen=True)
class PolicyDocument:
    access_class: AccessClass
    name: str
    statements: tuple = ()
    suppressions: tuple = ()

    @property
    def sids(self):
        return [s.sid for s in self.statements]

    @property
    def actions(self):
        return {a for s in self.statements for a in s.actions}

    def to_policy(self):
        """
        The IAM policy object for this document.
        """
        return {
            'Version': POLICY_VERSION,
            'Statement': [s.to_dict() for s in self.statements],
        }

    def to_json(self, compact=False):
        if compact:
            return json.dumps(self.to_policy(), separators=(',', ':'))
        return json.dumps(self.to_policy(), indent=2)

    def metadata(self):
        """
        Resource metadata telling cfn_nag which findings are expected, and why.
        """
        if not self.suppressions:
            return {}
        return {
            'cfn_nag': {
                'rules_to_suppress': [s.to_dict() for s in self.suppressions],
            },
        }

    def __bool__(self):
        return bool(self.statements)


@dataclass(frozen=True)
class PolicySet:
    """
    The read and write documents from one compilation.
    """
    read: PolicyDocument
    write: PolicyDocument

    def __iter__(self):
        yield self.read
        yield self.write

    def __getitem__(self, access_class):
        if AccessClass.parse(access_class) is AccessClass.READ:
            return self.read
        else:
            return self.write
