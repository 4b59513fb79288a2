"""Read the outputs of a deployed web server stack and check it answers."""

import argparse
import logging
from logging import getLogger
from typing import Sequence

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel
from rich import box, print
from rich.table import Table
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from webserver.schema import DEFAULT_REGION

logger = getLogger(__name__)

OUTPUT_KEYS = ("ip", "hostname", "url")


class WebServerOutputs(BaseModel, frozen=True):
    """The values a deployed web server stack exposes."""

    ip: str
    hostname: str
    url: str

    @classmethod
    def from_stack(cls, stack_name: str, region: str = DEFAULT_REGION):
        """Read outputs from a deployed CloudFormation stack.

        Raises:
            KeyError: if the stack does not expose one of the outputs
                (e.g. it is still being created).
            ClientError: if the stack does not exist.
        """
        cloudformation = boto3.client("cloudformation", region_name=region)
        response = cloudformation.describe_stacks(StackName=stack_name)
        stack = response["Stacks"][0]
        logger.debug(f"Stack {stack_name} is {stack.get('StackStatus')}")

        values = {
            output["OutputKey"]: output["OutputValue"]
            for output in stack.get("Outputs", [])
        }
        missing = [key for key in OUTPUT_KEYS if key not in values]
        if missing:
            raise KeyError(f"Stack {stack_name} has no output(s): {', '.join(missing)}")

        return cls(**{key: values[key] for key in OUTPUT_KEYS})


class _NotServing(Exception):
    pass


def wait_for_http(url: str, attempts: int = 30, wait_seconds: float = 10) -> None:
    """Poll ``url`` until it answers 200.

    Raises:
        RetryError: if the server never answered 200.
        httpx.InvalidURL: if ``url`` cannot be requested at all, without retrying.
    """

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(wait_seconds),
        retry=retry_if_exception_type((_NotServing, httpx.TransportError)),
    )
    def _check() -> None:
        response = httpx.get(url, timeout=5)
        if response.status_code != 200:
            logger.debug(f"{url} answered {response.status_code}")
            raise _NotServing(url)

    _check()
    logger.info(f"{url} is serving")


def print_outputs(stack_name: str, outputs: WebServerOutputs) -> None:
    table = Table(
        box=box.SQUARE,
        show_lines=False,
        title=stack_name,
        title_style="bold",
        title_justify="left",
    )
    table.add_column("Output")
    table.add_column("Value")
    for key in OUTPUT_KEYS:
        table.add_row(key, getattr(outputs, key))
    print(table)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show the outputs of a deployed web server stack."
    )
    parser.add_argument("stack", help="stack name, e.g. dev or prod")
    parser.add_argument("--region", default=DEFAULT_REGION)
    parser.add_argument(
        "--wait",
        action="store_true",
        help="wait until the server answers on its URL",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        outputs = WebServerOutputs.from_stack(args.stack, region=args.region)
        print_outputs(args.stack, outputs)
        if args.wait:
            wait_for_http(outputs.url)
    except (BotoCoreError, ClientError, KeyError) as e:
        reason = e.args[0] if isinstance(e, KeyError) else e
        print(f"\n[red]Could not read outputs of {args.stack}: {reason}[/red]\n")
        return 1
    except RetryError:
        print(f"\n[red]{outputs.url} did not respond[/red]\n")
        return 1
    except (httpx.InvalidURL, httpx.HTTPError) as e:
        print(f"\n[red]Could not check {outputs.url!r}: {e}[/red]\n")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
