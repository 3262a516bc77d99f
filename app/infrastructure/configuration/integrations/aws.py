"""AWS settings for the DynamoDB notification and token stores."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """Where and how the DynamoDB client connects.

    Environment Variables:
        AWS_REGION: Region hosting the tables (default: ca-central-1)
        AWS_ENDPOINT_URL: Endpoint override, e.g. DynamoDB Local in development
        AWS_MAX_RETRIES: Attempts on throttling before a store call fails
            with a transient error (default: 3)

    ``THROTTLING_ERRS`` lists the error codes retried with exponential delay
    inside ``execute_aws_api_call``; every other code is classified at once.
    """

    AWS_REGION: str = Field(default="ca-central-1", alias="AWS_REGION")
    ENDPOINT_URL: str | None = Field(default=None, alias="AWS_ENDPOINT_URL")
    MAX_RETRIES: int = Field(default=3, alias="AWS_MAX_RETRIES")

    THROTTLING_ERRS: list[str] = [
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "ProvisionedThroughputExceededException",
    ]
