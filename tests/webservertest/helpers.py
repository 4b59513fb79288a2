import boto3
from botocore.exceptions import BotoCoreError, ClientError

from webserver.schema import WebServerStackConfig


def has_aws_creds():
    try:
        boto3.client("sts").get_caller_identity()
        return True
    except (BotoCoreError, ClientError):
        return False


def make_config(**overrides) -> WebServerStackConfig:
    """Config with defaults only, independent of the environment."""
    return WebServerStackConfig(**overrides)
