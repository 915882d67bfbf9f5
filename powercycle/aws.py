"""
boto3 client construction for an account, assuming a role when configured.
"""

import logging
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import ClientError

from .config import Settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


def account_session(account_id: str, settings: Settings) -> boto3.session.Session:
    """
    Create a boto3 session for an account.

    Args:
        account_id: Target AWS account
        settings: Account settings (region, optional role to assume)

    Returns:
        Session using assumed-role credentials when ``assume_role_arn`` is set,
        otherwise the ambient credentials

    Raises:
        ClientError: If the role can't be assumed
    """
    if not settings.assume_role_arn:
        return boto3.session.Session(region_name=settings.region)

    role_arn = settings.assume_role_arn.replace("{accountId}", account_id)
    sts = boto3.client("sts", region_name=settings.region)
    try:
        response = sts.assume_role(RoleArn=role_arn, RoleSessionName=f"powercycle-{account_id}")
    except ClientError as e:
        logger.error(f"Unable to assume role {role_arn}: {e}")
        raise

    credentials = response["Credentials"]
    logger.debug(f"Assumed role {role_arn}")
    return boto3.session.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=settings.region,
    )


def client_factory(account_id: str, settings: Settings,
                   session: Optional[boto3.session.Session] = None) -> ClientFactory:
    """Return a callable creating (and caching) clients by service name."""
    clients = {}

    def factory(service: str):
        nonlocal session
        if service not in clients:
            if session is None:
                session = account_session(account_id, settings)
            clients[service] = session.client(service, region_name=settings.region)
        return clients[service]

    return factory
