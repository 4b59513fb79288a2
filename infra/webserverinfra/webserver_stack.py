"""Module for defining the public web server infrastructure using AWS CDK.

This module contains the CDK stack definition for a VPC with a single public
subnet and one EC2 instance serving a placeholder page over HTTP.

Creating, updating and deleting the resources is left to CloudFormation;
the stack only declares them.
"""

from logging import getLogger
from typing import Optional

import aws_cdk as cdk
import aws_cdk.aws_ec2 as ec2
from constructs import Construct

from webserver.schema import WebServerStackConfig

logger = getLogger(__name__)

ANYWHERE = "0.0.0.0/0"


def user_data_script(http_port: int) -> str:
    """Shell script that serves a one-line page from the instance."""
    return "\n".join(
        [
            "#!/bin/bash",
            "echo 'Hello, world!' > index.html",
            f"nohup python -m SimpleHTTPServer {http_port} &",
        ]
    )


def _machine_image(config: WebServerStackConfig) -> ec2.IMachineImage:
    # Lookups need a concrete account; without one, fall back to the SSM
    # parameter that always points at the latest Amazon Linux 2 image.
    if config.account is not None:
        logger.debug(
            f"Looking up newest image matching {config.ami_name_pattern} "
            f"owned by {config.ami_owners}"
        )
        return ec2.MachineImage.lookup(
            name=config.ami_name_pattern,
            owners=list(config.ami_owners),
        )
    logger.debug("No account configured, resolving image from SSM parameter")
    return ec2.MachineImage.latest_amazon_linux2()


class WebServerStack(cdk.Stack):
    """CDK Stack for a public HTTP server.

    Creates a VPC, internet gateway, public subnet, routing,
    a security group and an EC2 instance.
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        config: Optional[WebServerStackConfig] = None,
        **kwargs,
    ) -> None:
        """Initialize the web server stack.

        Args:
            scope: The parent construct.
            id: The construct ID, also the stack name (e.g. "dev").
            config: Stack configuration, read from the environment if omitted.
            **kwargs: Additional keyword arguments passed to the parent Stack.
        """
        if config is None:
            config = WebServerStackConfig.from_settings()
        self.config = config

        super().__init__(
            scope,
            id,
            env=cdk.Environment(account=config.account, region=config.region),
            **kwargs,
        )
        logger.info(f"Declaring web server stack {id} in {config.region}")

        # Deploy-time variables
        self.instance_type = cdk.CfnParameter(
            self,
            "instanceType",
            type="String",
            default=config.instance_type,
            description="EC2 instance type",
        )

        self.vpc_network_cidr = cdk.CfnParameter(
            self,
            "vpcNetworkCidr",
            type="String",
            default=config.vpc_network_cidr,
            description="VPC network CIDR",
        )

        self.image_id = _machine_image(config).get_image(self).image_id

        self.vpc = ec2.CfnVPC(
            self,
            "vpc",
            cidr_block=self.vpc_network_cidr.value_as_string,
            enable_dns_hostnames=True,
            enable_dns_support=True,
        )

        self.gateway = ec2.CfnInternetGateway(self, "gateway")

        self.gateway_attachment = ec2.CfnVPCGatewayAttachment(
            self,
            "gatewayAttachment",
            vpc_id=self.vpc.ref,
            internet_gateway_id=self.gateway.ref,
        )

        # Instances launched here get a public IP address
        self.subnet = ec2.CfnSubnet(
            self,
            "subnet",
            vpc_id=self.vpc.ref,
            cidr_block=config.subnet_cidr,
            map_public_ip_on_launch=True,
        )

        self.route_table = ec2.CfnRouteTable(
            self,
            "routeTable",
            vpc_id=self.vpc.ref,
        )

        self.default_route = ec2.CfnRoute(
            self,
            "defaultRoute",
            route_table_id=self.route_table.ref,
            destination_cidr_block=ANYWHERE,
            gateway_id=self.gateway.ref,
        )
        # The gateway must be attached before a route can target it
        self.default_route.add_dependency(self.gateway_attachment)

        self.route_table_association = ec2.CfnSubnetRouteTableAssociation(
            self,
            "routeTableAssociation",
            subnet_id=self.subnet.ref,
            route_table_id=self.route_table.ref,
        )

        self.security_group = ec2.CfnSecurityGroup(
            self,
            "secGroup",
            group_description="Enable HTTP access",
            vpc_id=self.vpc.ref,
            security_group_ingress=[
                ec2.CfnSecurityGroup.IngressProperty(
                    ip_protocol="tcp",
                    from_port=config.http_port,
                    to_port=config.http_port,
                    cidr_ip=ANYWHERE,
                )
            ],
            security_group_egress=[
                ec2.CfnSecurityGroup.EgressProperty(
                    ip_protocol="-1",
                    from_port=0,
                    to_port=0,
                    cidr_ip=ANYWHERE,
                )
            ],
        )

        self.instance = ec2.CfnInstance(
            self,
            "server",
            image_id=self.image_id,
            instance_type=self.instance_type.value_as_string,
            subnet_id=self.subnet.ref,
            security_group_ids=[self.security_group.attr_group_id],
            user_data=cdk.Fn.base64(user_data_script(config.http_port)),
        )
        # Without the route the instance comes up unreachable
        self.instance.add_dependency(self.default_route)

        for key, value in config.extra_tags:
            cdk.Tags.of(self).add(key, value)

        # Outputs read by webserver.outputs
        cdk.CfnOutput(
            self,
            "ip",
            value=self.instance.attr_public_ip,
            description="Public IP address of the web server",
        )

        cdk.CfnOutput(
            self,
            "hostname",
            value=self.instance.attr_public_dns_name,
            description="Public DNS name of the web server",
        )

        cdk.CfnOutput(
            self,
            "url",
            value=cdk.Fn.join("", ["http://", self.instance.attr_public_dns_name]),
            description="URL of the web server",
        )
