"""
Capability grants, and the catalog that holds them.

A grant is the unit of permission: some actions, on some resources, for one
access class. A catalog is the ordered, validated pile of grants for a single
principal.
"""
from dataclasses import dataclass, field
import enum
import re

from .errors import CatalogError

__all__ = 'AccessClass', 'CapabilityGrant', 'GrantCatalog', 'WILDCARD'

WILDCARD = '*'

ACTION_RE = re.compile(r'^[a-z0-9-]+:[A-Za-z0-9*]+$')

# {name}, but not IAM policy variables like ${aws:username}
PLACEHOLDER_RE = re.compile(r'(?<!\$)\{([A-Za-z_][A-Za-z0-9_]*)\}')
POLICY_VARIABLE_RE = re.compile(r'\$\{[^{}]*\}')
TAG_RE = re.compile(r'^[A-Za-z0-9]+$')

# Service prefixes whose obvious upper-casing makes an ugly sid
SERVICE_TAGS = {
    'dynamodb': 'DDB',
    'logs': 'CloudWatchLogs',
    'route53resolver': 'DNS',
    'wafv2': 'WAF',
}

RECORD_KEYS = {
    'id', 'access', 'actions', 'resources', 'conditions', 'justification',
    'action_justification', 'tag',
}


class AccessClass(enum.Enum):
    READ = 'Read'
    WRITE = 'Write'

    @classmethod
    def parse(cls, value):
        """
        Accepts an AccessClass, or its name in any case ("read", "WRITE").
        """
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown access class {value!r}") from None


def _ordered_set(items):
    if isinstance(items, str):
        items = [items]
    return tuple(dict.fromkeys(items or ()))


def _is_condition_value(value):
    if isinstance(value, str):
        return True
    return isinstance(value, (list, tuple)) and bool(value) and all(isinstance(v, str) for v in value)


def freeze_conditions(conditions):
    """
    Condition mapping to nested tuples, so grants and statements stay immutable.
    """
    if not conditions:
        return None
    return tuple(
        (op, tuple(
            (key, tuple(value) if isinstance(value, (list, tuple)) else value)
            for key, value in clauses.items()
        ))
        for op, clauses in conditions.items()
    )


def thaw_conditions(frozen):
    """
    The IAM shape of frozen conditions; a fresh dict on every call.
    """
    if not frozen:
        return None
    return {
        op: {key: list(value) if isinstance(value, tuple) else value for key, value in clauses}
        for op, clauses in frozen
    }


def _check_conditions(name, conditions):
    if not isinstance(conditions, dict):
        yield f"{name} conditions must map operators to clauses"
        return
    for op, clauses in conditions.items():
        if not isinstance(op, str) or not op:
            yield f"{name} has a condition with an empty operator"
            continue
        if not isinstance(clauses, dict) or not clauses:
            yield f"{name} condition {op!r} must map keys to values"
            continue
        for key, value in clauses.items():
            if not isinstance(key, str) or not key:
                yield f"{name} condition {op!r} has an empty key"
            elif not _is_condition_value(value):
                yield f"{name} condition {op}/{key} must be a string or a list of strings"


def stray_braces(pattern):
    """
    Whatever is left of a pattern's braces once real placeholders and policy
    variables are taken out, e.g. a typo like {policy-table}.
    """
    rest = PLACEHOLDER_RE.sub('', POLICY_VARIABLE_RE.sub('', pattern))
    return re.findall(r'\{[^{}]*\}?|\}', rest)


def is_service_wildcard(action):
    return isinstance(action, str) and action.endswith(':*')


def service_tag(action):
    """
    Guess a sid tag from the service prefix of an action.
    """
    service = action.partition(':')[0]
    if service in SERVICE_TAGS:
        return SERVICE_TAGS[service]
    return re.sub(r'[^A-Za-z0-9]', '', service).upper()


@dataclass(frozen=True)
class CapabilityGrant:
    id: str
    access_class: AccessClass
    actions: tuple
    resources: tuple
    conditions: dict = None
    justification: str = ''
    action_justification: str = ''
    tag: str = None
    _condition_problems: tuple = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        # Frozen, so normalize through object.__setattr__
        object.__setattr__(self, 'access_class', AccessClass.parse(self.access_class))
        object.__setattr__(self, 'actions', _ordered_set(self.actions))
        object.__setattr__(self, 'resources', _ordered_set(self.resources))
        object.__setattr__(self, 'justification', (self.justification or '').strip())
        object.__setattr__(self, 'action_justification', (self.action_justification or '').strip())
        # Checked here, while still in mapping form; a bad shape is kept out
        problems = ()
        if self.conditions:
            problems = tuple(_check_conditions(f"grant {self.id!r}", self.conditions))
        object.__setattr__(self, '_condition_problems', problems)
        object.__setattr__(self, 'conditions', None if problems else freeze_conditions(self.conditions))
        if not self.tag and self.actions and isinstance(self.actions[0], str):
            object.__setattr__(self, 'tag', service_tag(self.actions[0]))

    @property
    def condition_map(self):
        return thaw_conditions(self.conditions)

    @property
    def has_wildcard_resource(self):
        return WILDCARD in self.resources

    @property
    def has_wildcard_action(self):
        return any(is_service_wildcard(a) for a in self.actions)

    def problems(self):
        """
        Lists everything structurally wrong with this grant.
        """
        name = f"grant {self.id!r}"
        found = []
        if not self.id:
            found.append("grant with empty id")
        if not self.actions:
            found.append(f"{name} has no actions")
        if not self.resources:
            found.append(f"{name} has no resources")

        for action in self.actions:
            if not isinstance(action, str) or not ACTION_RE.match(action):
                found.append(f"{name} has malformed action {action!r} (expected service:Verb)")

        for res in self.resources:
            if not isinstance(res, str) or not res:
                found.append(f"{name} has an empty resource pattern")
            else:
                found.extend(
                    f"{name} has malformed placeholder {stray!r} in {res!r}"
                    for stray in stray_braces(res)
                )

        if self.tag and not TAG_RE.match(self.tag):
            found.append(f"{name} has non-alphanumeric tag {self.tag!r}")

        if self.has_wildcard_resource and not self.justification:
            found.append(f"{name} uses resource '*' without a justification")
        elif self.justification and not self.has_wildcard_resource:
            found.append(f"{name} has a justification but no '*' resource")

        if self.has_wildcard_action and not self.action_justification:
            found.append(f"{name} uses a service:* action without an action_justification")
        elif self.action_justification and not self.has_wildcard_action:
            found.append(f"{name} has an action_justification but no service:* action")

        found.extend(self._condition_problems)
        return found

    @classmethod
    def from_record(cls, record):
        """
        Build a grant from a plain mapping, like one out of stack config.
        """
        unknown = set(record) - RECORD_KEYS
        if unknown:
            raise ValueError(f"unknown grant keys {sorted(unknown)}")
        return cls(
            id=record.get('id', ''),
            access_class=AccessClass.parse(record.get('access')),
            actions=record.get('actions', ()),
            resources=record.get('resources', ()),
            conditions=record.get('conditions'),
            justification=record.get('justification', ''),
            action_justification=record.get('action_justification', ''),
            tag=record.get('tag'),
        )


@dataclass(frozen=True)
class GrantCatalog:
    """
    The ordered list of grants for one principal.

    Validated on construction; raises CatalogError listing every problem.
    """
    grants: tuple = field(default=())

    def __post_init__(self):
        object.__setattr__(self, 'grants', tuple(self.grants))
        problems = []
        seen = set()
        for grant in self.grants:
            if not isinstance(grant, CapabilityGrant):
                problems.append(f"not a grant: {grant!r}")
                continue
            if grant.id and grant.id in seen:
                problems.append(f"duplicate grant id {grant.id!r}")
            seen.add(grant.id)
            problems.extend(grant.problems())
        if problems:
            raise CatalogError(problems)

    @classmethod
    def from_records(cls, records):
        """
        Builds a catalog from plain mappings (see CapabilityGrant.from_record).
        """
        grants = []
        problems = []
        for i, record in enumerate(records or ()):
            try:
                grants.append(CapabilityGrant.from_record(record))
            except (ValueError, TypeError, AttributeError) as e:
                problems.append(f"record {i}: {e}")
        if problems:
            raise CatalogError(problems)
        return cls(grants)

    def extend(self, grants):
        """
        A new catalog with the given grants appended.
        """
        return type(self)(self.grants + tuple(grants))

    def partition(self, access_class):
        access_class = AccessClass.parse(access_class)
        return [g for g in self.grants if g.access_class is access_class]

    def ids(self):
        return [g.id for g in self.grants]

    def __iter__(self):
        return iter(self.grants)

    def __len__(self):
        return len(self.grants)

    def __getitem__(self, index):
        return self.grants[index]
