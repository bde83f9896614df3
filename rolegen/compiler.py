"""
Turns a grant catalog into read and write policy documents.

    compile_policies(catalog, {'region': ..., 'account': ..., ...})

Grants are compiled in catalog order, one statement per grant. Sids are
<tag><Read|Write><NN>, numbered within each (tag, access class) group, so the
same catalog always produces the same sids.

Anything wrong (unresolvable placeholder, duplicate sid, an unjustified '*')
is collected and raised as a single error. Nothing partial ever comes out.
"""
from collections import Counter
import re

import pulumi

from .documents import PolicyDocument, PolicySet, Statement, Suppression
from .errors import ResolutionError, ValidationError
from .grants import AccessClass, GrantCatalog, PLACEHOLDER_RE, WILDCARD

__all__ = 'compile_policies', 'validate_document', 'placeholders', 'resolve_pattern'

WILDCARD_RESOURCE_RULE = 'W12'
WILDCARD_ACTION_RULE = 'F4'

# Managed policy limit, counted without whitespace
MAX_POLICY_SIZE = 6144


def placeholders(pattern):
    """
    The placeholder names in a resource pattern, in order.
    """
    return PLACEHOLDER_RE.findall(pattern)


def resolve_pattern(pattern, identifiers):
    """
    Fills in the placeholders of a single pattern.

    Raises KeyError for the first missing placeholder.
    """
    def sub(match):
        value = identifiers.get(match.group(1))
        if value is None:
            raise KeyError(match.group(1))
        return value

    return PLACEHOLDER_RE.sub(sub, pattern)


def _resolve(catalog, identifiers):
    resolved = {}
    problems = []
    missing = []
    for grant in catalog:
        resources = []
        for pattern in grant.resources:
            for name in placeholders(pattern):
                value = identifiers.get(name)
                if value is None:
                    problems.append(f"grant {grant.id!r}: no value for placeholder {name!r} in {pattern!r}")
                    if name not in missing:
                        missing.append(name)
                elif not isinstance(value, str):
                    problems.append(f"grant {grant.id!r}: placeholder {name!r} resolved to non-string {value!r}")
            if not problems:
                resources.append(resolve_pattern(pattern, identifiers))
        resolved[grant.id] = tuple(dict.fromkeys(resources))

    if problems:
        raise ResolutionError(problems, missing=missing)
    return resolved


def _compile_document(access_class, grants, resources, name):
    statements = []
    suppressions = []
    counters = Counter()

    for grant in grants:
        counters[grant.tag] += 1
        sid = f"{grant.tag}{access_class.value}{counters[grant.tag]:02d}"
        stmt = Statement(
            sid=sid,
            actions=grant.actions,
            resources=resources[grant.id],
            conditions=grant.conditions,
            grant_id=grant.id,
        )
        pulumi.debug(f"{name}: {sid} <- {grant.id} ({len(stmt.actions)} actions, {len(stmt.resources)} resources)")
        statements.append(stmt)

        if WILDCARD in stmt.resources and grant.justification:
            suppressions.append(Suppression(WILDCARD_RESOURCE_RULE, grant.justification))
        if grant.action_justification:
            suppressions.append(Suppression(WILDCARD_ACTION_RULE, grant.action_justification))

    # Same rule, same reason: say it once
    suppressions = list(dict.fromkeys(suppressions))

    return PolicyDocument(
        access_class=access_class,
        name=name,
        statements=tuple(statements),
        suppressions=tuple(suppressions),
    )


def validate_document(doc, grants, max_size=MAX_POLICY_SIZE):
    """
    Lists everything wrong with a compiled document, given the grants of its
    access class.
    """
    problems = []
    label = doc.name

    if grants and not doc.statements:
        problems.append(f"{label}: no statements compiled from {len(grants)} grants")

    for sid, count in Counter(doc.sids).items():
        if count > 1:
            problems.append(f"{label}: sid {sid!r} used by {count} statements")

    covered = doc.actions
    for grant in grants:
        for action in grant.actions:
            if action not in covered:
                problems.append(f"{label}: action {action!r} of grant {grant.id!r} is not covered")

    by_id = {g.id: g for g in grants}
    reasons = {s.reason for s in doc.suppressions if s.rule_id == WILDCARD_RESOURCE_RULE}
    for stmt in doc.statements:
        grant = by_id.get(stmt.grant_id)
        if grant is None:
            problems.append(f"{label}: statement {stmt.sid!r} has no grant in this access class")
            continue
        wild = WILDCARD in stmt.resources
        if wild and not grant.justification:
            problems.append(f"{label}: statement {stmt.sid!r} resolves to resource '*' without a justification")
        elif grant.justification and not wild:
            problems.append(f"{label}: statement {stmt.sid!r} is justified but has no '*' resource")
        elif wild and grant.justification not in reasons:
            problems.append(f"{label}: justification for {stmt.sid!r} is missing from suppressions")

    if max_size is not None and doc.statements:
        size = len(re.sub(r'\s', '', doc.to_json(compact=True)))
        if size > max_size:
            problems.append(f"{label}: {size} characters exceeds the policy size limit of {max_size}")

    return problems


def compile_policies(catalog, identifiers=None, *, name='Policy', max_size=MAX_POLICY_SIZE):
    """
    Compiles a catalog into a PolicySet.

    catalog may be a GrantCatalog or any iterable of grants (validated into a
    catalog first). identifiers maps placeholder names to their values; every
    network lookup must already have happened.

    Raises CatalogError, ResolutionError or ValidationError; all of them are
    ValidationErrors, and each lists every problem found.
    """
    if not isinstance(catalog, GrantCatalog):
        catalog = GrantCatalog(catalog)
    identifiers = dict(identifiers or {})

    resources = _resolve(catalog, identifiers)

    docs = {}
    problems = []
    for access_class in AccessClass:
        grants = catalog.partition(access_class)
        doc = _compile_document(access_class, grants, resources, f"{name}{access_class.value}")
        problems.extend(validate_document(doc, grants, max_size))
        docs[access_class] = doc

    if problems:
        raise ValidationError(problems)

    policies = PolicySet(read=docs[AccessClass.READ], write=docs[AccessClass.WRITE])
    for doc in policies:
        pulumi.info(
            f"{doc.name}: {len(doc.statements)} statements, {len(doc.suppressions)} suppressions"
        )
        for sup in doc.suppressions:
            pulumi.info(f"{doc.name}: suppressing {sup.rule_id}: {sup.reason}")
    return policies
