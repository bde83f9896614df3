"""Tests for compiling grant catalogs into policy documents."""

import pulumi
import pytest

from rolegen import (
    AccessClass, CapabilityGrant, CatalogError, GrantCatalog, ResolutionError,
    Suppression, ValidationError, compile_policies,
)
from rolegen.compiler import placeholders, resolve_pattern, validate_document
from rolegen.documents import PolicyDocument, Statement

READ = AccessClass.READ
WRITE = AccessClass.WRITE

IDS = {
    'region': 'us-east-1',
    'account': '111122223333',
    'policyTable': 'fms-policies',
}

TABLE_ARN = 'arn:aws:dynamodb:{region}:{account}:table/{policyTable}'


@pytest.fixture
def catalog():
    return GrantCatalog([
        CapabilityGrant(
            'regions', READ, ['ec2:DescribeRegions'], ['*'],
            justification="no resource-level support",
        ),
        CapabilityGrant('table', WRITE, ['dynamodb:GetItem', 'dynamodb:UpdateItem'], [TABLE_ARN]),
        CapabilityGrant(
            'shares', WRITE, ['ram:DeleteResourceShare'], ['*'],
            conditions={'StringEquals': {'aws:ResourceTag/FMManaged': 'true'}},
            justification="only tagged shares",
        ),
        CapabilityGrant('table-scan', WRITE, ['dynamodb:Scan'], [TABLE_ARN]),
    ])


class TestPlaceholders:
    def test_finds_names_in_order(self):
        assert placeholders(TABLE_ARN) == ['region', 'account', 'policyTable']

    def test_ignores_policy_variables(self):
        assert placeholders('arn:aws:s3:::bucket/${aws:username}/*') == []
        assert placeholders('arn:aws:s3:::{bucket}/${aws:username}/*') == ['bucket']

    def test_resolve(self):
        assert resolve_pattern(TABLE_ARN, IDS) == 'arn:aws:dynamodb:us-east-1:111122223333:table/fms-policies'
        assert resolve_pattern('*', {}) == '*'

    def test_resolve_missing(self):
        with pytest.raises(KeyError):
            resolve_pattern(TABLE_ARN, {'region': 'us-east-1'})


class TestScenarios:
    def test_single_read_wildcard_grant(self):
        policies = compile_policies(
            [CapabilityGrant(
                'regions', READ, ['ec2:DescribeRegions'], ['*'],
                justification="no resource-level support",
            )],
            {},
        )
        (stmt,) = policies.read.statements
        assert stmt.sid == 'EC2Read01'
        assert stmt.effect == 'Allow'
        assert stmt.actions == ('ec2:DescribeRegions',)
        assert stmt.resources == ('*',)
        assert policies.read.suppressions == (Suppression('W12', "no resource-level support"),)
        assert not policies.write
        assert policies.write.suppressions == ()

    def test_missing_placeholder(self):
        with pytest.raises(ResolutionError) as excinfo:
            compile_policies(
                [CapabilityGrant('table', WRITE, ['dynamodb:UpdateItem'], [TABLE_ARN])],
                {'region': 'us-east-1', 'account': '111122223333'},
            )
        assert excinfo.value.missing == ['policyTable']
        assert 'policyTable' in str(excinfo.value)

    def test_duplicate_ids_fail_before_compiling(self):
        with pytest.raises(CatalogError):
            compile_policies([
                CapabilityGrant('same', READ, ['s3:GetObject'], ['arn:aws:s3:::b/*']),
                CapabilityGrant('same', WRITE, ['s3:PutObject'], ['arn:aws:s3:::b/*']),
            ], {})


class TestCompile:
    def test_partitions_by_access_class(self, catalog):
        policies = compile_policies(catalog, IDS)
        assert [s.grant_id for s in policies.read.statements] == ['regions']
        assert [s.grant_id for s in policies.write.statements] == ['table', 'shares', 'table-scan']
        assert policies[READ] is policies.read
        assert policies['write'] is policies.write
        assert [d.access_class for d in policies] == [READ, WRITE]

    def test_every_grant_compiles_exactly_once(self, catalog):
        policies = compile_policies(catalog, IDS)
        compiled = [s.grant_id for doc in policies for s in doc.statements]
        assert sorted(compiled) == sorted(catalog.ids())
        for doc in policies:
            for stmt in doc.statements:
                assert catalog[catalog.ids().index(stmt.grant_id)].access_class is doc.access_class

    def test_sids_number_within_tag_and_class(self, catalog):
        policies = compile_policies(catalog, IDS)
        assert policies.read.sids == ['EC2Read01']
        assert policies.write.sids == ['DDBWrite01', 'RAMWrite01', 'DDBWrite02']

    def test_sids_follow_catalog_order(self):
        grants = [
            CapabilityGrant('b', READ, ['s3:GetObject'], ['arn:aws:s3:::b/*']),
            CapabilityGrant('a', READ, ['s3:ListBucket'], ['arn:aws:s3:::b']),
        ]
        policies = compile_policies(grants, {})
        assert [(s.grant_id, s.sid) for s in policies.read.statements] == [('b', 'S3Read01'), ('a', 'S3Read02')]

    def test_resources_are_resolved(self, catalog):
        stmt = compile_policies(catalog, IDS).write.statements[0]
        assert stmt.resources == ('arn:aws:dynamodb:us-east-1:111122223333:table/fms-policies',)

    def test_conditions_carried(self, catalog):
        stmt = compile_policies(catalog, IDS).write.statements[1]
        assert stmt.to_dict()['Condition'] == {'StringEquals': {'aws:ResourceTag/FMManaged': 'true'}}

    def test_names(self, catalog):
        policies = compile_policies(catalog, IDS, name='FMSPolicy')
        assert policies.read.name == 'FMSPolicyRead'
        assert policies.write.name == 'FMSPolicyWrite'

    def test_idempotent(self, catalog):
        first = compile_policies(catalog, IDS)
        second = compile_policies(catalog, dict(IDS))
        assert first == second
        for a, b in zip(first, second):
            assert a.to_json() == b.to_json()
            assert a.metadata() == b.metadata()

    def test_extra_identifiers_are_ignored(self, catalog):
        assert compile_policies(catalog, dict(IDS, unused='x')) == compile_policies(catalog, IDS)

    def test_resolved_duplicates_collapse(self):
        policies = compile_policies(
            [CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}', '{other}'])],
            {'queue': 'arn:aws:sqs:us-east-1:111122223333:q', 'other': 'arn:aws:sqs:us-east-1:111122223333:q'},
        )
        assert policies.write.statements[0].resources == ('arn:aws:sqs:us-east-1:111122223333:q',)


class TestSuppressions:
    def test_one_per_wildcard_statement(self, catalog):
        policies = compile_policies(catalog, IDS)
        assert policies.write.suppressions == (Suppression('W12', "only tagged shares"),)

    def test_justification_appears_verbatim(self, catalog):
        policies = compile_policies(catalog, IDS)
        for doc in policies:
            reasons = [s.reason for s in doc.suppressions]
            for stmt in doc.statements:
                grant = catalog[catalog.ids().index(stmt.grant_id)]
                assert ('*' in stmt.resources) == bool(grant.justification)
                if grant.justification:
                    assert grant.justification in reasons

    def test_same_rule_same_reason_deduplicated(self):
        policies = compile_policies([
            CapabilityGrant('a', READ, ['ec2:DescribeRegions'], ['*'], justification="no resource-level support"),
            CapabilityGrant('b', READ, ['ec2:DescribeInstances'], ['*'], justification="no resource-level support"),
        ], {})
        assert policies.read.suppressions == (Suppression('W12', "no resource-level support"),)
        assert len(policies.read.statements) == 2

    def test_same_reason_different_rule_kept(self):
        policies = compile_policies([
            CapabilityGrant(
                'waf', WRITE, ['wafv2:*'], ['*'],
                justification="managed by FMS",
                action_justification="managed by FMS",
            ),
        ], {})
        assert policies.write.suppressions == (
            Suppression('W12', "managed by FMS"),
            Suppression('F4', "managed by FMS"),
        )

    def test_suppressions_logged_as_info(self, catalog, monkeypatch):
        infos, warnings = [], []
        monkeypatch.setattr(pulumi, 'info', lambda msg, *args, **kwargs: infos.append(msg))
        monkeypatch.setattr(pulumi, 'warn', lambda msg, *args, **kwargs: warnings.append(msg))
        compile_policies(catalog, IDS, name='FMSPolicy')
        assert warnings == []
        assert "FMSPolicyWrite: suppressing W12: only tagged shares" in infos

    def test_suppressions_stay_in_their_document(self, catalog):
        policies = compile_policies(catalog, IDS)
        assert "only tagged shares" not in [s.reason for s in policies.read.suppressions]


class TestFailClosed:
    def test_collects_every_missing_placeholder(self):
        with pytest.raises(ResolutionError) as excinfo:
            compile_policies([
                CapabilityGrant('t', WRITE, ['dynamodb:UpdateItem'], [TABLE_ARN]),
                CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}']),
            ], {})
        assert excinfo.value.missing == ['region', 'account', 'policyTable', 'queue']
        assert len(excinfo.value.violations) == 4

    def test_none_counts_as_missing(self):
        with pytest.raises(ResolutionError) as excinfo:
            compile_policies([CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}'])], {'queue': None})
        assert excinfo.value.missing == ['queue']

    def test_non_string_identifier(self):
        with pytest.raises(ResolutionError) as excinfo:
            compile_policies([CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}'])], {'queue': 42})
        assert 'non-string' in excinfo.value.violations[0]

    def test_resolution_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            compile_policies([CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}'])], {})

    def test_placeholder_resolving_to_wildcard_needs_justification(self):
        with pytest.raises(ValidationError) as excinfo:
            compile_policies([CapabilityGrant('q', WRITE, ['sqs:SendMessage'], ['{queue}'])], {'queue': '*'})
        assert "without a justification" in str(excinfo.value)

    def test_invalid_grant_produces_nothing(self):
        with pytest.raises(CatalogError):
            compile_policies([
                CapabilityGrant('ok', READ, ['s3:GetObject'], ['arn:aws:s3:::b/*']),
                CapabilityGrant('bad', WRITE, ['s3:PutObject'], ['*']),
            ], {})

    def test_malformed_placeholder_is_not_passed_through(self):
        with pytest.raises(CatalogError) as excinfo:
            compile_policies(
                [CapabilityGrant('table', WRITE, ['dynamodb:UpdateItem'], ['arn:aws:dynamodb:{region}:{account}:table/{policy-table}'])],
                dict(IDS, **{'policy-table': 'fms-policies'}),
            )
        assert "'{policy-table}'" in str(excinfo.value)

    def test_oversized_document(self):
        grants = [
            CapabilityGrant(f'g{i}', READ, ['s3:GetObject'], [f'arn:aws:s3:::bucket-{i:04d}/*'])
            for i in range(200)
        ]
        with pytest.raises(ValidationError) as excinfo:
            compile_policies(grants, {})
        assert "policy size limit" in str(excinfo.value)
        assert compile_policies(grants, {}, max_size=None).read.statements


class TestValidateDocument:
    grants = [
        CapabilityGrant('a', READ, ['s3:GetObject'], ['arn:aws:s3:::b/*']),
        CapabilityGrant('b', READ, ['s3:ListBucket'], ['arn:aws:s3:::b']),
    ]

    def test_compiled_document_is_clean(self):
        doc = compile_policies(self.grants, {}).read
        assert validate_document(doc, self.grants) == []

    def test_duplicate_sids(self):
        doc = PolicyDocument(READ, 'PolicyRead', statements=(
            Statement('S3Read01', ('s3:GetObject',), ('arn:aws:s3:::b/*',), grant_id='a'),
            Statement('S3Read01', ('s3:ListBucket',), ('arn:aws:s3:::b',), grant_id='b'),
        ))
        assert validate_document(doc, self.grants) == ["PolicyRead: sid 'S3Read01' used by 2 statements"]

    def test_empty_document_for_non_empty_partition(self):
        problems = validate_document(PolicyDocument(READ, 'PolicyRead'), self.grants)
        assert problems[0] == "PolicyRead: no statements compiled from 2 grants"
        assert "PolicyRead: action 's3:ListBucket' of grant 'b' is not covered" in problems

    def test_empty_document_for_empty_partition(self):
        assert validate_document(PolicyDocument(WRITE, 'PolicyWrite'), []) == []

    def test_uncovered_action(self):
        doc = PolicyDocument(READ, 'PolicyRead', statements=(
            Statement('S3Read01', ('s3:GetObject',), ('arn:aws:s3:::b/*',), grant_id='a'),
            Statement('S3Read02', ('s3:GetObject',), ('arn:aws:s3:::b',), grant_id='b'),
        ))
        assert validate_document(doc, self.grants) == [
            "PolicyRead: action 's3:ListBucket' of grant 'b' is not covered",
        ]

    def test_missing_suppression(self):
        grants = [CapabilityGrant('r', READ, ['ec2:DescribeRegions'], ['*'], justification="no resource-level support")]
        doc = PolicyDocument(READ, 'PolicyRead', statements=(
            Statement('EC2Read01', ('ec2:DescribeRegions',), ('*',), grant_id='r'),
        ))
        assert validate_document(doc, grants) == [
            "PolicyRead: justification for 'EC2Read01' is missing from suppressions",
        ]
        doc = PolicyDocument(READ, 'PolicyRead', statements=doc.statements, suppressions=(
            Suppression('W12', "no resource-level support"),
        ))
        assert validate_document(doc, grants) == []
