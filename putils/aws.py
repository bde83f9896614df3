import os

import pulumi
import pulumi_aws

__all__ = 'opts', 'get_region', 'get_account_id', 'NoRegionError'

LOCALSTACK_URL = os.environ.get('LOCALSTACK_URL', 'http://localhost:4566')

PROVIDER = None

if os.environ.get('STAGE') == 'local':
    PROVIDER = pulumi_aws.Provider(
        "localstack",
        skip_credentials_validation=True,
        skip_metadata_api_check=True,
        s3_use_path_style=True,
        access_key="mockAccessKey",
        secret_key="mockSecretKey",
        region='us-east-1',
        endpoints=[{
            service: LOCALSTACK_URL
            for service in ('dynamodb', 'iam', 'logs', 's3', 'sqs', 'ssm', 'sts')
        }],
    )


class NoRegionError(Exception):
    """
    Raised if we aren't able to detect the current region
    """


def opts(**kwargs):
    """
    Defines the opts for resources, including any localstack config.

    localstack config is only applied if this is a top-level resource (does not
    have a parent).

    Usage:
    >>> Resource(..., **opts(...))
    """
    if PROVIDER is not None:
        if 'parent' not in kwargs:
            kwargs.setdefault('provider', PROVIDER)
    return {
        'opts': pulumi.ResourceOptions(**kwargs)
    }


def get_region():
    """
    Gets the AWS region we're deploying to.
    """
    if PROVIDER is not None:
        return 'us-east-1'
    # Same lookup order as pulumi-aws
    config = pulumi.Config("aws").get('region')
    if config:
        return config
    elif 'AWS_REGION' in os.environ:
        return os.environ['AWS_REGION']
    elif 'AWS_DEFAULT_REGION' in os.environ:
        return os.environ['AWS_DEFAULT_REGION']
    else:
        raise NoRegionError("Unable to determine AWS Region")


def get_account_id():
    """
    Gets the account id of whoever we're deploying as.
    """
    invoke_opts = None
    if PROVIDER is not None:
        invoke_opts = pulumi.InvokeOptions(provider=PROVIDER)
    return pulumi_aws.get_caller_identity(opts=invoke_opts).account_id
