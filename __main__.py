import json

import pulumi
from pulumi_aws import cloudwatch, dynamodb, iam, s3, sqs, ssm

from putils import opts, get_region, get_account_id, RolePolicies
from rolegen import GrantCatalog
from fmsgrants import CATALOG

config = pulumi.Config('rolegen')
name = config.get('name') or 'FMS'

role = iam.Role(
    f'{name}-role',
    assume_role_policy=json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }],
    }),
    **opts()
)

table = dynamodb.Table(
    f'{name}-policies',
    attributes=[{'name': 'PolicyName', 'type': 'S'}],
    hash_key='PolicyName',
    billing_mode='PAY_PER_REQUEST',
    **opts()
)

queue = sqs.Queue(f'{name}-queue', **opts())

log_group = cloudwatch.LogGroup(
    f'{name}-logs',
    retention_in_days=30,
    **opts()
)

manifest = s3.Bucket(f'{name}-manifest', **opts())

# Scope config for the solution; values are edited by hand after deploy
params = {
    key: ssm.Parameter(
        f'{name}-{key}',
        type='StringList',
        value=default,
        **opts()
    )
    for key, default in [('region', get_region()), ('ou', 'NOP'), ('tag', 'NOP')]
}

catalog = CATALOG
extra = config.get_object('extra-grants')
if extra:
    catalog = catalog.extend(GrantCatalog.from_records(extra))

policies = RolePolicies(
    name,
    role=role.id,
    catalog=catalog,
    identifiers={
        'region': get_region(),
        'account': get_account_id(),
        'policyTable': table.name,
        'logGroup': log_group.arn,
        'queue': queue.arn,
        'metricsQueue': config.require('metrics-queue'),
        'regionParamArn': params['region'].arn,
        'ouParamArn': params['ou'].arn,
        'tagParamArn': params['tag'].arn,
        'bucketArn': manifest.arn,
    },
    **opts()
)

pulumi.export('role_arn', role.arn)
pulumi.export('suppressions', policies.suppressions)
