import json

import aws_cdk as cdk
import aws_cdk.assertions as assertions
import pytest
from webserverinfra.webserver_stack import WebServerStack, user_data_script

from .helpers import make_config

SSM_IMAGE_PARAMETER_TYPE = "AWS::SSM::Parameter::Value<AWS::EC2::Image::Id>"


def _template(**overrides) -> assertions.Template:
    app = cdk.App()
    stack = WebServerStack(app, "dev", config=make_config(**overrides))
    return assertions.Template.from_stack(stack)


@pytest.fixture(scope="module")
def template() -> assertions.Template:
    return _template()


def _single(template: assertions.Template, resource_type: str) -> dict:
    resources = template.find_resources(resource_type)
    assert len(resources) == 1
    return next(iter(resources.values()))


def test_stack_region():
    app = cdk.App()
    stack = WebServerStack(app, "dev", config=make_config())
    assert stack.region == "us-west-2"


def test_resource_counts(template):
    for resource_type in [
        "AWS::EC2::VPC",
        "AWS::EC2::InternetGateway",
        "AWS::EC2::VPCGatewayAttachment",
        "AWS::EC2::Subnet",
        "AWS::EC2::RouteTable",
        "AWS::EC2::Route",
        "AWS::EC2::SubnetRouteTableAssociation",
        "AWS::EC2::SecurityGroup",
        "AWS::EC2::Instance",
    ]:
        template.resource_count_is(resource_type, 1)


def test_parameters_defaults(template):
    template.has_parameter(
        "instanceType",
        {"Type": "String", "Default": "t3.micro", "Description": "EC2 instance type"},
    )
    template.has_parameter(
        "vpcNetworkCidr",
        {"Type": "String", "Default": "10.0.0.0/16", "Description": "VPC network CIDR"},
    )


def test_vpc_uses_cidr_parameter(template):
    template.has_resource_properties(
        "AWS::EC2::VPC",
        {
            "CidrBlock": {"Ref": "vpcNetworkCidr"},
            "EnableDnsHostnames": True,
            "EnableDnsSupport": True,
        },
    )


def test_subnet_maps_public_ip(template):
    template.has_resource_properties(
        "AWS::EC2::Subnet",
        {
            "VpcId": {"Ref": "vpc"},
            "CidrBlock": "10.0.1.0/24",
            "MapPublicIpOnLaunch": True,
        },
    )


def test_default_route_through_gateway(template):
    route = _single(template, "AWS::EC2::Route")
    assert route["Properties"] == {
        "RouteTableId": {"Ref": "routeTable"},
        "DestinationCidrBlock": "0.0.0.0/0",
        "GatewayId": {"Ref": "gateway"},
    }
    assert "gatewayAttachment" in route["DependsOn"]

    template.has_resource_properties(
        "AWS::EC2::SubnetRouteTableAssociation",
        {"SubnetId": {"Ref": "subnet"}, "RouteTableId": {"Ref": "routeTable"}},
    )


def test_security_group_only_http_in(template):
    group = _single(template, "AWS::EC2::SecurityGroup")["Properties"]
    assert group["GroupDescription"] == "Enable HTTP access"
    assert group["SecurityGroupIngress"] == [
        {"IpProtocol": "tcp", "FromPort": 80, "ToPort": 80, "CidrIp": "0.0.0.0/0"}
    ]
    assert group["SecurityGroupEgress"] == [
        {"IpProtocol": "-1", "FromPort": 0, "ToPort": 0, "CidrIp": "0.0.0.0/0"}
    ]


def test_instance(template):
    instance = _single(template, "AWS::EC2::Instance")
    properties = instance["Properties"]
    assert properties["InstanceType"] == {"Ref": "instanceType"}
    assert properties["SubnetId"] == {"Ref": "subnet"}
    assert properties["SecurityGroupIds"] == [{"Fn::GetAtt": ["secGroup", "GroupId"]}]
    assert "SimpleHTTPServer 80" in json.dumps(properties["UserData"])
    assert "defaultRoute" in instance["DependsOn"]


def test_image_from_ssm_without_account(template):
    image_parameters = template.find_parameters(
        "*", {"Type": SSM_IMAGE_PARAMETER_TYPE}
    )
    assert len(image_parameters) == 1
    (name, parameter), = image_parameters.items()
    assert "amzn2-ami" in parameter["Default"]

    properties = _single(template, "AWS::EC2::Instance")["Properties"]
    assert properties["ImageId"] == {"Ref": name}


def test_image_lookup_with_account():
    template = _template(account="123456789012")
    assert template.find_parameters("*", {"Type": SSM_IMAGE_PARAMETER_TYPE}) == {}

    image_id = _single(template, "AWS::EC2::Instance")["Properties"]["ImageId"]
    assert isinstance(image_id, str)
    assert image_id.startswith("ami-")


def test_outputs(template):
    template.has_output("ip", {"Value": {"Fn::GetAtt": ["server", "PublicIp"]}})
    template.has_output(
        "hostname", {"Value": {"Fn::GetAtt": ["server", "PublicDnsName"]}}
    )
    template.has_output(
        "url",
        {
            "Value": {
                "Fn::Join": [
                    "",
                    ["http://", {"Fn::GetAtt": ["server", "PublicDnsName"]}],
                ]
            }
        },
    )


def test_custom_port_moves_ingress_and_server():
    template = _template(http_port=8080)
    group = _single(template, "AWS::EC2::SecurityGroup")["Properties"]
    assert [(r["FromPort"], r["ToPort"]) for r in group["SecurityGroupIngress"]] == [
        (8080, 8080)
    ]
    properties = _single(template, "AWS::EC2::Instance")["Properties"]
    assert "SimpleHTTPServer 8080" in json.dumps(properties["UserData"])


def test_extra_tags():
    template = _template(extra_tags=(("Owner", "web"),))
    for resource_type in ["AWS::EC2::VPC", "AWS::EC2::Subnet", "AWS::EC2::Instance"]:
        template.has_resource_properties(
            resource_type,
            {"Tags": assertions.Match.array_with([{"Key": "Owner", "Value": "web"}])},
        )


def test_user_data_script():
    assert user_data_script(80).splitlines() == [
        "#!/bin/bash",
        "echo 'Hello, world!' > index.html",
        "nohup python -m SimpleHTTPServer 80 &",
    ]


def test_synthesis_is_repeatable():
    assert _template().to_json() == _template().to_json()
