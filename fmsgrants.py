"""
What the firewall manager automation role is allowed to do.

Resource placeholders:
 * region, account: where we're deployed
 * policyTable: DynamoDB table tracking the FMS policies we manage
 * logGroup: ARN of the function's log group
 * queue, metricsQueue: ARN of the work queue, name of the metrics queue
 * regionParamArn, ouParamArn, tagParamArn: SSM parameters holding scope config
 * bucketArn: ARN of the bucket with the policy manifest
"""
from rolegen import AccessClass, CapabilityGrant, GrantCatalog

READ = AccessClass.READ
WRITE = AccessClass.WRITE

CATALOG = GrantCatalog([
    CapabilityGrant(
        'regions', READ,
        actions=['ec2:DescribeRegions'],
        resources=['*'],
        justification="ec2:DescribeRegions does not support resource level permissions",
    ),
    CapabilityGrant(
        'scope-params', READ,
        actions=['ssm:GetParameter'],
        resources=['{regionParamArn}', '{ouParamArn}', '{tagParamArn}'],
    ),
    CapabilityGrant(
        'manifest', READ,
        actions=['s3:GetObject'],
        resources=['{bucketArn}', '{bucketArn}/*'],
    ),
    CapabilityGrant(
        'dns-ram-list', READ,
        actions=[
            'route53resolver:ListFirewallDomainLists',
            'route53resolver:ListFirewallRuleGroups',
            'ram:ListResources',
        ],
        resources=['*'],
        justification=(
            "* needed for [route53resolver:ListFirewallDomainLists, "
            "route53resolver:ListFirewallRuleGroups, ram:ListResources], "
            "does not support resource level permissions"
        ),
        tag='DNSRAM',
    ),

    CapabilityGrant(
        'policy-table', WRITE,
        actions=['dynamodb:GetItem', 'dynamodb:UpdateItem', 'dynamodb:DeleteItem'],
        resources=['arn:aws:dynamodb:{region}:{account}:table/{policyTable}'],
    ),
    CapabilityGrant(
        'fms-policies', WRITE,
        actions=['fms:PutPolicy', 'fms:DeletePolicy'],
        resources=['arn:aws:fms:*:*:policy/*'],
    ),
    CapabilityGrant(
        'logs', WRITE,
        actions=['logs:CreateLogStream', 'logs:PutLogEvents', 'logs:CreateLogGroup'],
        resources=['{logGroup}'],
    ),
    CapabilityGrant(
        'queues', WRITE,
        actions=['sqs:SendMessage'],
        resources=['{queue}', 'arn:aws:sqs:{region}:{account}:{metricsQueue}'],
    ),
    CapabilityGrant(
        'waf', WRITE,
        actions=['wafv2:*', 'shield:GetSubscriptionState'],
        resources=['*'],
        justification="WAFv2 policies are created and deleted by FMS, their ARNs aren't known ahead of time",
        action_justification="Read & Write permissions needed to create WAFv2 policies",
    ),
    CapabilityGrant(
        'dns-firewall', WRITE,
        actions=[
            'route53resolver:CreateFirewallRule',
            'route53resolver:CreateFirewallRuleGroup',
            'route53resolver:DeleteFirewallRuleGroup',
            'route53resolver:ListFirewallRules',
            'route53resolver:DeleteFirewallRule',
            'route53resolver:GetFirewallRuleGroup',
        ],
        resources=['*'],
        justification="route53resolver firewall resources are created/deleted as part of solution",
    ),
    CapabilityGrant(
        'ram-shares', WRITE,
        actions=['ram:DeleteResourceShare'],
        resources=['*'],
        conditions={
            'StringEquals': {'aws:ResourceTag/FMManaged': 'true'},
        },
        justification="Only shares tagged FMManaged, which the solution creates",
    ),
])
