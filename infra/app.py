"""CDK application entry point for the web server infrastructure.

This module initializes the AWS CDK application and declares the "dev"
and "prod" web server stacks with identical configuration.
"""
from typing import Optional

import aws_cdk as cdk
from webserverinfra.webserver_stack import WebServerStack

from webserver.schema import WebServerStackConfig

ENVIRONMENTS = ("dev", "prod")


def build_app(config: Optional[WebServerStackConfig] = None) -> cdk.App:
    """Declare one web server stack per environment."""
    if config is None:
        config = WebServerStackConfig.from_settings()

    app = cdk.App()
    for name in ENVIRONMENTS:
        WebServerStack(app, name, config=config)

    # Written into every taggable resource at synthesis
    cdk.Tags.of(app).add("Project", "webserverinfra")
    return app


if __name__ == "__main__":
    build_app().synth()
