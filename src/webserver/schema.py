"""
Schema definitions for the web server stack.

This module provides the configuration model used to declare the web server
network and instance, and the settings class that reads it from the
environment.
"""

import ipaddress
import os
from typing import Optional, Tuple

from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._unpack_tags import unpack_tags

env_prefix = "WEBSERVER_"

DEFAULT_REGION = "us-west-2"
DEFAULT_INSTANCE_TYPE = "t3.micro"
DEFAULT_VPC_NETWORK_CIDR = "10.0.0.0/16"
DEFAULT_SUBNET_CIDR = "10.0.1.0/24"
DEFAULT_HTTP_PORT = 80
DEFAULT_AMI_NAME_PATTERN = "amzn2-ami-hvm-*"
DEFAULT_AMI_OWNERS = ("amazon",)


class _WebServerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", env_prefix=env_prefix
    )
    region: Optional[str] = None
    account: Optional[str] = None
    instance_type: Optional[str] = None
    vpc_network_cidr: Optional[str] = None
    subnet_cidr: Optional[str] = None
    http_port: Optional[int] = None
    ami_name_pattern: Optional[str] = None
    extra_tags_str: Optional[str] = None  # in the format "key1=value1;key2=value2"


class WebServerStackConfig(BaseModel, frozen=True):
    """
    Configuration for a web server stack.

    Attributes:
        region: AWS region every resource is declared in
        account: AWS account (optional). When set, the machine image is
            resolved with a context lookup instead of the public SSM parameter
        instance_type: Default for the ``instanceType`` stack parameter
        vpc_network_cidr: Default for the ``vpcNetworkCidr`` stack parameter
        subnet_cidr: CIDR of the public subnet
        http_port: The only port open for inbound traffic
        ami_name_pattern: Image name filter, newest match wins
        ami_owners: Image owner filter
        extra_tags: tuple of 2-tuples of tags added to every resource
    """

    region: str = DEFAULT_REGION
    account: Optional[str] = None
    instance_type: str = DEFAULT_INSTANCE_TYPE
    vpc_network_cidr: str = DEFAULT_VPC_NETWORK_CIDR
    subnet_cidr: str = DEFAULT_SUBNET_CIDR
    http_port: int = DEFAULT_HTTP_PORT
    ami_name_pattern: str = DEFAULT_AMI_NAME_PATTERN
    ami_owners: Tuple[str, ...] = DEFAULT_AMI_OWNERS
    extra_tags: Tuple[Tuple[str, str], ...] = ()

    @field_validator("vpc_network_cidr", "subnet_cidr")
    @classmethod
    def _check_cidr(cls, value: str) -> str:
        try:
            ipaddress.IPv4Network(value)
        except ValueError as e:
            raise ValueError(f"'{value}' is not a valid IPv4 CIDR block: {e}")
        return value

    @field_validator("http_port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"HTTP port {value} is outside the range 1-65535")
        return value

    @model_validator(mode="after")
    def _check_subnet_in_vpc(self) -> "WebServerStackConfig":
        vpc = ipaddress.IPv4Network(self.vpc_network_cidr)
        subnet = ipaddress.IPv4Network(self.subnet_cidr)
        if not subnet.subnet_of(vpc):
            raise ValueError(
                f"Subnet CIDR {self.subnet_cidr} is not inside "
                f"VPC CIDR {self.vpc_network_cidr}"
            )
        return self

    @classmethod
    def from_settings(cls, **kwargs):
        """Create an instance from environment settings with optional overrides."""
        settings = _WebServerSettings()

        params = {
            "region": settings.region,
            "account": settings.account,
            "instance_type": settings.instance_type,
            "vpc_network_cidr": settings.vpc_network_cidr,
            "subnet_cidr": settings.subnet_cidr,
            "http_port": settings.http_port,
            "ami_name_pattern": settings.ami_name_pattern,
            "extra_tags": unpack_tags(settings.extra_tags_str),
        }

        # Override with any provided kwargs
        params.update(kwargs)

        if params["account"] is None:
            params["account"] = os.getenv("CDK_DEFAULT_ACCOUNT")

        # Unset values take the model defaults
        return cls(**{k: v for k, v in params.items() if v is not None})
